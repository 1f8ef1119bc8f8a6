import datetime as dt
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from jose import jwt, JWTError

logger = logging.getLogger(__name__)

AUTH_COOKIE = "auth-token"
ISSUER = "keepthisfile-auth"


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str


def extract_token(authorization: Optional[str], cookie: Optional[str]) -> Optional[str]:
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()

    return cookie or None


class CredentialVerifier:
    """Stateless signature and expiry check for session tokens."""

    def __init__(self, secret: str, algorithm: str = "HS256", ttl_days: int = 7):
        self.secret = secret
        self.algorithm = algorithm
        self.ttl = dt.timedelta(days=ttl_days)

    def mint(self, user_id: str, email: str) -> str:
        now = dt.datetime.now(dt.timezone.utc)
        payload = {
            "iss": ISSUER,
            "sub": user_id,
            "email": email,
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: Optional[str]) -> Optional[Identity]:
        if not token:
            return None

        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm], issuer=ISSUER)
        except JWTError as e:
            logger.debug(f"Rejected credential: {e}")
            return None

        user_id = payload.get("sub")
        email = payload.get("email")
        if not user_id or not email:
            return None

        return Identity(user_id=str(user_id), email=email)
