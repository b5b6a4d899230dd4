"""
Supabase-backed durable storage and authentication.
"""
import asyncio
import logging
from typing import Optional, Any

from supabase import Client, create_client

from ...config import STORAGE_BUCKET
from ...interview.capabilities import AuthProvider, DurableStorage, Identity
from ...interview.schemas import Credentials

logger = logging.getLogger("supabase_storage")

AUTH_ERROR_MESSAGES = (
    ("Invalid login credentials", "Invalid email or password. Please try again."),
    ("Email not confirmed", "Please verify your email before logging in."),
    ("already registered", "This email is already registered. Please log in instead."),
)
UNEXPECTED_AUTH_ERROR = "An unexpected error occurred. Please try again."


class AuthFailed(Exception):
    """Sign-in/sign-up rejected. ``str(e)`` is the message to show the user."""


def friendly_auth_message(error: Exception) -> str:
    text = str(error)
    for fragment, message in AUTH_ERROR_MESSAGES:
        if fragment in text:
            return message
    return text or UNEXPECTED_AUTH_ERROR


def connect(url: str, key: str) -> Client:
    return create_client(url, key)


class SupabaseStorage(DurableStorage):
    """Private bucket uploads and signed download URLs."""

    def __init__(self, client: Client, bucket: str = STORAGE_BUCKET):
        self.client = client
        self.bucket = bucket

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        await asyncio.to_thread(
            self._bucket().upload,
            path,
            data,
            {"content-type": content_type, "upsert": "false"},
        )
        logger.debug(f"Stored {len(data)} bytes at {self.bucket}/{path}")

    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        response = await asyncio.to_thread(self._bucket().create_signed_url, path, ttl_seconds)
        url = _signed_url_from(response)
        if not url:
            raise RuntimeError(f"No signed URL returned for {path}")
        return url


def _signed_url_from(response: Any) -> Optional[str]:
    if isinstance(response, dict):
        return response.get("signedURL") or response.get("signedUrl") or response.get("signed_url")
    return getattr(response, "signed_url", None)


class SupabaseAuth(AuthProvider):
    """Email/password authentication against the project's auth service."""

    def __init__(self, client: Client):
        self.client = client

    async def current_identity(self) -> Optional[Identity]:
        try:
            response = await asyncio.to_thread(self.client.auth.get_user)
        except Exception as e:
            logger.info(f"No authenticated user: {e}")
            return None
        user = getattr(response, "user", None) if response is not None else None
        if user is None:
            return None
        return Identity(id=user.id, email=getattr(user, "email", None))

    async def sign_in(self, credentials: Credentials) -> Identity:
        """
        Raises:
            AuthFailed: with the user-facing message
        """
        try:
            response = await asyncio.to_thread(
                self.client.auth.sign_in_with_password,
                {"email": credentials.email, "password": credentials.password},
            )
        except Exception as e:
            logger.error("Sign-in failed: %s", e)
            raise AuthFailed(friendly_auth_message(e)) from e
        logger.info("Signed in")
        return Identity(id=response.user.id, email=response.user.email)

    async def sign_up(self, credentials: Credentials, redirect_url: Optional[str] = None) -> None:
        """Create the account; the user must confirm their email before signing in."""
        options = {"data": {"full_name": credentials.full_name}}
        if redirect_url:
            options["email_redirect_to"] = redirect_url
        try:
            await asyncio.to_thread(
                self.client.auth.sign_up,
                {"email": credentials.email, "password": credentials.password, "options": options},
            )
        except Exception as e:
            logger.error("Sign-up failed: %s", e)
            raise AuthFailed(friendly_auth_message(e)) from e
        logger.info("Account created, awaiting email confirmation")

    async def sign_out(self) -> None:
        await asyncio.to_thread(self.client.auth.sign_out)
