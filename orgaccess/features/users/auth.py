"""
Identity: Appwrite JWT verification.

A bearer token is only trusted once Appwrite has confirmed it; the local
user is then matched on the account id Appwrite returns, never on claims
read from the token itself.
"""
import jwt
from typing import NamedTuple
from appwrite.client import Client
from appwrite.services.account import Account
from appwrite.exception import AppwriteException
from starlette.concurrency import run_in_threadpool

from orgaccess.core import config
from orgaccess.core.errors import OrganizationError


class AuthenticationError(OrganizationError):
    code = "UNAUTHENTICATED"
    status_code = 401


class Identity(NamedTuple):
    appwrite_id: str
    email: str
    name: str


def session_client(token: str) -> Client:
    """Appwrite client acting as the holder of ``token``."""
    client = Client()
    client.set_endpoint(config.APPWRITE_ENDPOINT)
    client.set_project(config.APPWRITE_PROJECT_ID)
    client.set_jwt(token)
    return client


def verify_jwt_token(token: str) -> dict:
    """
    Decode an Appwrite JWT and return its payload.

    Only the shape and expiry are checked here, so malformed or stale tokens
    are turned away without a round trip. The payload proves nothing about
    who sent it; use ``fetch_identity`` for that.

    Raises:
        AuthenticationError: token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": True}
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(f"Invalid token: {e}")


async def fetch_identity(token: str) -> Identity:
    """
    Ask Appwrite who the token belongs to.

    The email is lowercased, as invitations are matched on it.

    Raises:
        AuthenticationError: Appwrite rejected the token, or the account has no email
    """
    try:
        account = await run_in_threadpool(Account(session_client(token)).get)
    except AppwriteException as e:
        raise AuthenticationError(f"Failed to verify token: {e}")
    email = (account.get("email") or "").strip().lower()
    if not email:
        raise AuthenticationError("Identity has no email address")
    return Identity(
        appwrite_id=account["$id"],
        email=email,
        name=account.get("name") or email.split("@")[0],
    )
