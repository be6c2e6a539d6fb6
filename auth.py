"""Password hashing, access tokens and the bearer-token dependency.

Tokens are stateless JWTs carrying ``{id, email, iat, exp}``. A token stays
valid for its whole lifetime; there is no revocation.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, ValidationError

from config import ALGORITHM, SECRET_KEY
from logging_config import get_logger

logger = get_logger("auth")

ACCESS_TOKEN_EXPIRE = timedelta(hours=20)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)

bearer_scheme = HTTPBearer(auto_error=False)


class TokenClaims(BaseModel):
    """Identity carried by a verified access token"""
    id: int
    email: str
    exp: int


class Unauthenticated(HTTPException):
    """No usable credential was presented"""
    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class Forbidden(HTTPException):
    """A credential was presented but is not acceptable"""
    def __init__(self, detail: str = "Invalid or expired token"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def hash_password(password: str) -> str:
    """Hash a plain text password using the configured password hashing context"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify if a plain text password matches its hashed version"""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, now: Optional[datetime] = None) -> str:
    """Create a signed access token that expires 20 hours after ``now``"""
    issued_at = now or datetime.now(timezone.utc)
    to_encode = data.copy()
    to_encode.update({"iat": issued_at, "exp": issued_at + ACCESS_TOKEN_EXPIRE})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_access_token(token: Optional[str], now: Optional[datetime] = None) -> TokenClaims:
    """
    Check the signature and expiry of ``token`` and return its claims.

    Raises:
        Unauthenticated: token missing or not decodable at all
        Forbidden: bad signature, missing claims, or expired
    """
    if not token:
        raise Unauthenticated()

    try:
        jwt.get_unverified_claims(token)
    except JWTError:
        logger.info("Rejected malformed token")
        raise Unauthenticated("Malformed token")

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM],
                             options={"verify_exp": False})
        claims = TokenClaims(**payload)
    except (JWTError, ValidationError) as e:
        logger.info("Rejected token: %s", e)
        raise Forbidden("Invalid token")

    current = now or datetime.now(timezone.utc)
    if current.timestamp() >= claims.exp:
        logger.info("Rejected expired token for user %s", claims.id)
        raise Forbidden("Token has expired")

    return claims


def get_current_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> TokenClaims:
    """Require a valid bearer token and expose its claims on ``request.state``"""
    if credentials is None:
        raise Unauthenticated()

    claims = verify_access_token(credentials.credentials)
    request.state.claims = claims
    return claims
