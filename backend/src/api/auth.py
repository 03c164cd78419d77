import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError
from passlib.context import CryptContext

logger = logging.getLogger(__name__)

# Setup password hashing, bcrypt cost 10
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)

# Bearer scheme; missing credentials are reported by get_current_user_id as 401
bearer_scheme = HTTPBearer(auto_error=False)

ALGORITHM = "HS256"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against its hash. Never raises for a mismatch."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # unrecognized or corrupt stored hash
        return False


def get_password_hash(password: str) -> str:
    """Hash a plaintext password with a freshly generated salt."""
    return pwd_context.hash(password)


class TokenService:
    """
    Issues and verifies signed, time-limited bearer tokens carrying a user id.

    Verification is stateless: signature and expiry decide validity, no storage
    lookup happens and no revocation list exists.
    """

    def __init__(self, secret_key: str, expire_minutes: int, algorithm: str = ALGORITHM):
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.expires_delta = timedelta(minutes=expire_minutes)

    def issue(self, user_id: str, expires_delta: Optional[timedelta] = None) -> str:
        """Create a signed JWT access token for user_id."""
        issued_at = datetime.now(tz=timezone.utc)
        expire = issued_at + (expires_delta if expires_delta is not None else self.expires_delta)
        to_encode = {"sub": str(user_id), "iat": issued_at, "exp": expire}
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> Optional[str]:
        """
        Return the user id carried by token, or None when the token is malformed,
        signed with another key, expired, or lacks a subject.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError:
            return None
        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            return None
        return subject


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


# PUBLIC_INTERFACE
def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> str:
    """
    Dependency that resolves the caller's user id from the Authorization: Bearer header
    and binds it to request.state.user_id.

    Raises:
        401 if the header is missing, not a bearer credential, or the token is invalid.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise credentials_exception
    user_id = tokens.verify(credentials.credentials)
    if user_id is None:
        logger.debug("Rejected bearer token on %s %s", request.method, request.url.path)
        raise credentials_exception
    request.state.user_id = user_id
    return user_id
