from dataclasses import dataclass, field

from core.exceptions import InvalidSignature, MalformedToken
from services.principal_resolver import PrincipalResolver
from services.token_signer import TokenSigner
from utils.logger import get_logger

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class AuthenticatedPrincipal:
    username: str
    roles: list[str] = field(default_factory=list)
    enabled: bool = True


def extract_bearer_token(authorization: str | None) -> str | None:
    """Returns the credential from an ``Authorization: Bearer <token>`` header."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


class AccessGate:
    """
    Request-time access token check.

    Never rejects by itself: any failure yields None (unauthenticated) and
    the route decides whether that is acceptable. The refresh store is never
    consulted, so an access token stays valid until its exp.
    """

    def __init__(self, signer: TokenSigner, resolver: PrincipalResolver):
        self.signer = signer
        self.resolver = resolver

    def authenticate(self, authorization: str | None) -> AuthenticatedPrincipal | None:
        token = extract_bearer_token(authorization)
        if token is None:
            return None

        try:
            claims = self.signer.verify(token)
        except InvalidSignature as e:
            logger.warning("Rejected bearer token - bad signature", extra={"reason": str(e)})
            return None
        except MalformedToken as e:
            logger.warning("Rejected bearer token - malformed", extra={"reason": str(e)})
            return None

        if self.signer.is_expired(token):
            # Clients are expected to refresh; not a security event
            logger.debug("Expired access token", extra={"username": claims.subject})
            return None

        description = self.resolver.describe(claims.subject)
        if description is None or not description.enabled:
            logger.info("Bearer token for unknown or disabled principal",
                        extra={"username": claims.subject})
            return None

        return AuthenticatedPrincipal(
            username=description.username,
            roles=list(description.roles),
            enabled=description.enabled,
        )
