import binascii
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import jwt, JWTError
from jose.utils import base64url_decode, base64url_encode

from core.clock import Clock
from core.exceptions import InvalidSignature, MalformedToken
from utils.logger import get_logger

logger = get_logger(__name__)

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"


@dataclass(frozen=True)
class AccessClaims:
    subject: str
    issued_at: datetime
    expires_at: datetime
    type: str = ACCESS_TOKEN_TYPE


class TokenSigner:
    """
    Issues and verifies HMAC-SHA-256 signed access tokens.

    verify() only checks structure and signature. Expiry is a separate
    question (is_expired) so callers can tell a stale but authentic token
    from a tampered one.
    """

    def __init__(self, secret: str, ttl_ms: int, clock: Clock):
        if len(secret.encode("utf-8")) < 32:
            raise ValueError("Signing secret must be at least 32 bytes")
        if ttl_ms <= 0:
            raise ValueError("Access token TTL must be positive")
        self._secret = secret
        self._ttl = timedelta(milliseconds=ttl_ms)
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def sign(self, principal: str) -> str:
        """
        Creates an access token for principal.

        Returns:
            Compact JWT with claims sub, iat, exp and type="access"
        """
        now = self._clock.now()
        expires = now + self._ttl

        # exp is rounded up so the lifetime is never shorter than the TTL
        payload = {
            "sub": principal,
            "iat": math.floor(now.timestamp()),
            "exp": math.ceil(expires.timestamp()),
            "type": ACCESS_TOKEN_TYPE,
        }

        logger.debug("Access token issued", extra={"username": principal})
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> AccessClaims:
        """
        Parses token and checks its signature.

        Raises:
            MalformedToken: not a JWT, or required claims missing/invalid
            InvalidSignature: well-formed but not signed with our key
        """
        if not token or not isinstance(token, str):
            raise MalformedToken("Empty token")

        try:
            header = jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as e:
            raise MalformedToken(str(e)) from e

        if header.get("alg") != ALGORITHM:
            raise MalformedToken(f"Unexpected algorithm {header.get('alg')!r}")

        _require_canonical_signature(token)

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_aud": False},
            )
        except JWTError as e:
            raise InvalidSignature(str(e)) from e

        return self._claims_from_payload(payload)

    def is_expired(self, token: str) -> bool:
        """True if the token is past its exp, or cannot be verified at all."""
        try:
            claims = self.verify(token)
        except (InvalidSignature, MalformedToken):
            return True
        return self._clock.now() >= claims.expires_at

    @staticmethod
    def _claims_from_payload(payload: dict) -> AccessClaims:
        subject = payload.get("sub")
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")
        token_type = payload.get("type")

        if not isinstance(subject, str) or not subject:
            raise MalformedToken("Missing subject")
        if not isinstance(issued_at, int) or not isinstance(expires_at, int):
            raise MalformedToken("Missing or non-integer iat/exp")
        if token_type != ACCESS_TOKEN_TYPE:
            raise MalformedToken("Invalid token type. Access token required.")

        return AccessClaims(
            subject=subject,
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
            type=token_type,
        )


def _require_canonical_signature(token: str) -> None:
    """
    Rejects signatures with non-zero padding bits.

    base64url decoding ignores the spare low bits of the last character, so
    several spellings decode to the same MAC. Only the one produced by
    re-encoding the decoded bytes is accepted.
    """
    signature = token.rsplit(".", 1)[-1]
    try:
        decoded = base64url_decode(signature.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise MalformedToken("Signature is not base64url") from e

    if base64url_encode(decoded).decode("ascii") != signature:
        raise InvalidSignature("Signature is not canonically encoded")
