import secrets
import logging
from datetime import datetime, timedelta

from fastapi import HTTPException, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from passlib.context import CryptContext

from catfish_cull import config

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
security = HTTPBearer(auto_error=False)


# ============================================================================
# Session Context
# ============================================================================

class SessionContext:
    """Staff sessions for one running app: created at startup, tokens revoked on logout."""

    def __init__(
        self,
        password: str = config.ADMIN_PASSWORD,
        secret: str = config.JWT_SECRET,
        expire_hours: int = config.JWT_EXPIRE_HOURS,
    ):
        self.password_hash = pwd_context.hash(password)
        self.secret = secret
        self.expire_hours = expire_hours
        self._revoked = set()

    def verify_password(self, password: str) -> bool:
        return pwd_context.verify(password, self.password_hash)

    def create_token(self) -> str:
        expire = datetime.utcnow() + timedelta(hours=self.expire_hours)
        return jwt.encode(
            {"sub": "staff", "role": "staff", "jti": secrets.token_hex(16), "exp": expire},
            self.secret,
            algorithm=config.JWT_ALGORITHM,
        )

    def decode_token(self, token: str) -> dict:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[config.JWT_ALGORITHM])
        except JWTError:
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        if claims.get("jti") in self._revoked:
            raise HTTPException(status_code=401, detail="Session has been logged out")
        return claims

    def revoke(self, claims: dict):
        self._revoked.add(claims.get("jti"))
        logger.info("Staff session logged out")


def get_session(request: Request) -> SessionContext:
    return request.app.state.session


def require_staff(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: SessionContext = Depends(get_session),
):
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return session.decode_token(credentials.credentials)
