from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from core.config import settings
from core.exceptions import TokenVerificationError
from services.access_gate import extract_bearer_token

LOGIN_LIMIT = "20/minute"
REFRESH_LIMIT = "30/minute"


def get_request_key(request: Request):
    """
    Throttling key: the bearer's principal when a verifiable access token
    is present, the client address otherwise.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    signer = getattr(request.app.state, "token_signer", None)
    if token and signer is not None:
        try:
            return f"principal:{signer.verify(token).subject}"
        except TokenVerificationError:
            pass

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_request_key,
    default_limits=["200/hour"],
    enabled=settings.ENV != "testing"
)
