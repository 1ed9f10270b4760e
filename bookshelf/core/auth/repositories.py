from typing import Any

from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from ..database import BaseRepository
from ..exceptions import DBError
from ..logger import get_logger
from .schemas import UserProfile
from .utilities import mask_email

logger = get_logger(__name__)


class ProfileRepository(BaseRepository):
    """
    Repository for the USER_PROFILE table.

    Profiles are only ever created here; updates and deletes are out of scope
    for the auth flows.
    """

    async def get_by_email(self, email: str) -> UserProfile | None:
        """
        Get the profile registered for an email, if any.

        Read side of the store; the auth flows only ever write through
        ``insert_if_absent``.

        Raises:
            DBError: If the query fails
        """
        try:
            async with self.session() as session:
                query = select(UserProfile).where(UserProfile.email == email)
                result = await session.exec(query)
                return result.first()
        except DBError:
            raise
        except Exception as e:
            logger.error(f"Error fetching profile for {mask_email(email)}: {e}")
            raise DBError(f"Failed to fetch profile: {e}") from e

    def _build_insert(self, email: str, username: str) -> Any:
        table = UserProfile.__table__  # type: ignore[attr-defined]
        values = {"C_EMAIL": email, "C_USERNAME": username}

        dialect = self.db_manager.dialect_name
        if dialect == "sqlite":
            return sqlite_insert(table).values(values).on_conflict_do_nothing(index_elements=["C_EMAIL"])
        if dialect == "postgresql":
            return pg_insert(table).values(values).on_conflict_do_nothing(index_elements=["C_EMAIL"])
        # other dialects: plain insert, the unique constraint reports the conflict
        return insert(table).values(values)

    async def insert_if_absent(self, email: str, username: str) -> bool:
        """
        Atomically create a profile unless one already exists for the email.

        Safe under concurrent callers: the unique constraint on C_EMAIL decides
        the winner, and every loser sees ``False``.

        Returns:
            True if this call created the row, False if it already existed.

        Raises:
            DBError: For any failure other than the email already being taken
        """
        stmt = self._build_insert(email, username)
        try:
            async with self.transaction() as session:
                result = await session.execute(stmt)  # pyright: ignore[reportDeprecated]
                created = getattr(result, "rowcount", 0) == 1
        except DBError as e:
            if isinstance(e.__cause__, IntegrityError):
                logger.debug(f"Profile for {mask_email(email)} already exists")
                return False
            raise

        if created:
            logger.debug(f"Inserted profile row for {mask_email(email)}")
        return created
