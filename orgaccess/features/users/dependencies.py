"""
FastAPI dependencies for authentication.
"""
from typing import Annotated
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orgaccess.core.database.engine import get_db
from orgaccess.features.users.models import User
from orgaccess.features.users.auth import AuthenticationError, verify_jwt_token, fetch_identity
from orgaccess.utils import get_logger, utcnow


log = get_logger(__name__)
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> User:
    """
    Get the current authenticated user from the bearer token.
    
    Every token is confirmed with Appwrite. Users seen for the first time
    are provisioned locally; the last login time is updated on every call.
    """
    verify_jwt_token(credentials.credentials)
    identity = await fetch_identity(credentials.credentials)
    
    result = await db.execute(
        select(User).where(User.appwrite_id == identity.appwrite_id)
    )
    user = result.scalar_one_or_none()
    
    if user is None:
        result = await db.execute(select(User).where(User.email == identity.email))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(appwrite_id=identity.appwrite_id, email=identity.email, name=identity.name)
            db.add(user)
            log.info("Provisioned user for Appwrite id %s", identity.appwrite_id)
        elif user.appwrite_id is None:
            # created server-side before the first login
            user.appwrite_id = identity.appwrite_id
            log.info("Linked user %s to Appwrite id %s", user.id, identity.appwrite_id)
        else:
            raise AuthenticationError("Email is linked to a different account")
    
    user.last_login_at = utcnow()
    await db.commit()
    
    if not user.is_active:
        raise AuthenticationError("User account is deactivated")
    
    return user


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
