from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional
import uuid
from jose import JWTError, jwt
from fastapi import HTTPException, status, Depends
from fastapi.security import OAuth2PasswordBearer
from loguru import logger
from johari.core.config import settings


class IdentityProvider(ABC):
    """Supplies the opaque identity of whoever is calling. The core never interprets it."""

    @abstractmethod
    async def current_identity(self) -> str:
        ...


class StaticIdentityProvider(IdentityProvider):
    def __init__(self, identity: str):
        self.identity = identity

    async def current_identity(self) -> str:
        return self.identity


oauth2_scheme=OAuth2PasswordBearer(tokenUrl="/v1/auth/anonymous")

credentials_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


def create_access_token(data:dict,expires_delta:Optional[timedelta]=None)->str:
    to_encode=data.copy()
    if expires_delta:
        expire=datetime.now(timezone.utc)+expires_delta
    else:
        expire=datetime.now(timezone.utc)+timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({
        "exp":expire
    })
    encoded_jwt=jwt.encode(to_encode,settings.SECRET_KEY,algorithm=settings.ALGORITHM)
    return encoded_jwt


def issue_anonymous_identity()->tuple[str,str]:
    """Signs in anonymously: a fresh opaque identity and a token carrying it."""
    identity=uuid.uuid4().hex
    token=create_access_token(data={"sub":identity,"anonymous":True})
    logger.info(f"Issued anonymous identity {identity}")
    return identity,token


def verify_token(token: str) -> str:
    """Verifies a JWT token and returns the identity in its 'sub' claim."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected token: {e}")
        raise credentials_exception
    identity: Optional[str] = payload.get("sub")
    if not identity:
        raise credentials_exception
    return identity


async def get_current_identity(token:str=Depends(oauth2_scheme))->str:
    """
    Dependency to get the identity of the caller from a JWT token.
    Raises HTTPException if the token is missing or invalid.
    """
    return verify_token(token)


async def get_identity_provider(identity:str=Depends(get_current_identity))->IdentityProvider:
    return StaticIdentityProvider(identity)
