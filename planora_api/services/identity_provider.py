"""Identity providers: create and delete authenticated identities.

Two backends share one interface:

- LocalIdentityProvider keeps identities in this service's ``users`` table.
- SupabaseIdentityProvider calls the managed backend's admin REST API
  with the service-role key.

``delete_user`` treats an already-absent identity as success so purge
cycles can be re-run safely.
"""

import abc
import uuid

import httpx
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from planora_api.core.errors import IdentityCreationError, IdentityDeletionError
from planora_api.core.security import hash_password
from planora_api.logging_config import get_logger
from planora_api.models.user import User

logger = get_logger(__name__)

SUPABASE_ADMIN_USERS_PATH = "/auth/v1/admin/users"
HTTP_TIMEOUT_SECONDS = 10.0


class IdentityProvider(abc.ABC):
    """Creates and deletes authenticated identities."""

    @abc.abstractmethod
    async def create_user(
        self,
        email: str,
        password: str,
        email_confirmed: bool = True,
    ) -> uuid.UUID:
        """Create an identity and return its id.

        Raises:
            IdentityCreationError: If the identity could not be created.
        """

    @abc.abstractmethod
    async def delete_user(self, user_id: uuid.UUID) -> None:
        """Delete an identity; succeeds if it does not exist.

        Raises:
            IdentityDeletionError: If the provider refused or failed.
        """


class LocalIdentityProvider(IdentityProvider):
    """Identities stored in the local ``users`` table with bcrypt hashes."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def create_user(
        self,
        email: str,
        password: str,
        email_confirmed: bool = True,
    ) -> uuid.UUID:
        try:
            existing = await self._db.execute(select(User.id).where(User.email == email))
            if existing.scalar_one_or_none() is not None:
                raise IdentityCreationError(
                    "A user with this email address has already been registered."
                )

            user = User(
                email=email,
                hashed_password=hash_password(password),
                email_confirmed=email_confirmed,
            )
            self._db.add(user)
            await self._db.commit()
            await self._db.refresh(user)
        except SQLAlchemyError as e:
            await self._db.rollback()
            logger.error("Local identity creation failed", error=str(e))
            raise IdentityCreationError() from e

        logger.info("Local identity created", user_id=str(user.id))
        return user.id

    async def delete_user(self, user_id: uuid.UUID) -> None:
        try:
            result = await self._db.execute(delete(User).where(User.id == user_id))
            await self._db.commit()
        except SQLAlchemyError as e:
            await self._db.rollback()
            logger.error(
                "Local identity deletion failed",
                user_id=str(user_id),
                error=str(e),
            )
            raise IdentityDeletionError() from e

        if result.rowcount == 0:
            logger.debug("Local identity already absent", user_id=str(user_id))


class SupabaseIdentityProvider(IdentityProvider):
    """Identities managed by Supabase Auth (GoTrue admin API)."""

    def __init__(self, base_url: str, service_role_key: str) -> None:
        self._base_url = base_url.rstrip("/")
        self._service_role_key = service_role_key

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
            "Content-Type": "application/json",
        }

    def _users_url(self, user_id: uuid.UUID | None = None) -> str:
        url = f"{self._base_url}{SUPABASE_ADMIN_USERS_PATH}"
        return f"{url}/{user_id}" if user_id else url

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        return (
            body.get("msg")
            or body.get("message")
            or body.get("error_description")
            or f"HTTP {response.status_code}"
        )

    async def create_user(
        self,
        email: str,
        password: str,
        email_confirmed: bool = True,
    ) -> uuid.UUID:
        try:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
                response = await client.post(
                    self._users_url(),
                    headers=self._headers(),
                    json={
                        "email": email,
                        "password": password,
                        "email_confirm": email_confirmed,
                    },
                )
        except httpx.HTTPError as e:
            logger.error("Supabase create user request failed", error=str(e))
            raise IdentityCreationError() from e

        if response.status_code not in (200, 201):
            message = self._error_message(response)
            logger.warning(
                "Supabase rejected user creation",
                status_code=response.status_code,
                error=message,
            )
            raise IdentityCreationError(message)

        user_id = response.json().get("id")
        if not user_id:
            raise IdentityCreationError()
        return uuid.UUID(user_id)

    async def delete_user(self, user_id: uuid.UUID) -> None:
        try:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
                response = await client.delete(
                    self._users_url(user_id),
                    headers=self._headers(),
                )
        except httpx.HTTPError as e:
            logger.error(
                "Supabase delete user request failed",
                user_id=str(user_id),
                error=str(e),
            )
            raise IdentityDeletionError(str(e)) from e

        if response.status_code == 404:
            logger.debug("Supabase identity already absent", user_id=str(user_id))
            return
        if response.status_code not in (200, 204):
            raise IdentityDeletionError(self._error_message(response))
