from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(CamelModel):
    # Length rules live in AuthEngine so they surface as ValidationError
    username: str
    password: str


class RefreshTokenRequest(CamelModel):
    refresh_token: str


class Token(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class StatusResponse(CamelModel):
    code: str
    message: str


class UserInfoResponse(CamelModel):
    username: str
    enabled: bool
    roles: list[str]
