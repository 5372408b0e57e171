"""Persistence for identity records."""

import logging
from datetime import datetime

from sqlalchemy import delete, func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import defer
from sqlmodel import col, select

from alive.errors import DuplicateIdentity
from alive.models import SENSITIVE_FIELDS, Identity, IdentityStatus
from alive.models.base import utcnow

logger = logging.getLogger(__name__)


def is_unique_violation(error: IntegrityError) -> bool:
    """True when the database rejected a duplicate value.

    asyncpg reports SQLSTATE 23505; SQLite only says so in the message.
    """
    if getattr(error.orig, "sqlstate", None) == "23505":
        return True
    return "unique" in str(error.orig).lower()


def _identity_query(include_sensitive: bool):
    """Base select for identities.

    Default reads leave sensitive columns unloaded and raise on access, so
    they can only be read from a query that asked for them.
    """
    stmt = select(Identity)
    if include_sensitive:
        # Reload rows already in the session that were read without them
        return stmt.execution_options(populate_existing=True)
    return stmt.options(*(defer(getattr(Identity, name), raiseload=True) for name in SENSITIVE_FIELDS))


class IdentityStore:
    """Reads and writes identities through an async session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, identity_id: str, include_sensitive: bool = False) -> Identity | None:
        stmt = _identity_query(include_sensitive).where(Identity.id == identity_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str, include_sensitive: bool = False) -> Identity | None:
        stmt = _identity_query(include_sensitive).where(Identity.email == email.strip().lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_conflict(
        self,
        email: str,
        phone_number: str,
        national_id: str,
    ) -> Identity | None:
        """Return any identity sharing the email, phone number, or national id."""
        stmt = (
            _identity_query(include_sensitive=False)
            .where(
                or_(
                    Identity.email == email.strip().lower(),
                    Identity.phone_number == phone_number,
                    Identity.national_id == national_id,
                )
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def add(self, identity: Identity) -> Identity:
        """Insert a new identity.

        Raises:
            DuplicateIdentity: if a unique column collides (e.g. a concurrent
                registration won the race after the conflict check)
        """
        email = identity.email = identity.email.strip().lower()
        self.session.add(identity)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            if not is_unique_violation(e):
                raise
            logger.warning(f"Unique constraint rejected identity {email}: {e.orig}")
            raise DuplicateIdentity() from e
        return identity

    async def save(self, identity: Identity) -> Identity:
        """Persist changes to an existing identity in one write.

        Raises:
            DuplicateIdentity: the change collides with another identity's
                email, phone number, or national id
        """
        self.session.add(identity)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            if is_unique_violation(e):
                raise DuplicateIdentity() from e
            raise
        return identity

    async def delete(self, identity: Identity) -> None:
        await self.session.delete(identity)
        await self.session.commit()

    async def bulk_update_status(self, identity_ids: list[str], status: IdentityStatus) -> int:
        """Set the status on many identities. Returns how many actually changed."""
        stmt = (
            update(Identity)
            .where(col(Identity.id).in_(identity_ids), Identity.status != status.value)
            .values(status=status.value, updated_at=utcnow())
            .execution_options(synchronize_session="evaluate")
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount

    async def bulk_delete(self, identity_ids: list[str]) -> int:
        """Delete many identities. Returns how many existed."""
        stmt = (
            delete(Identity)
            .where(col(Identity.id).in_(identity_ids))
            .execution_options(synchronize_session="evaluate")
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount

    async def basic_info(self) -> list[Identity]:
        """Every identity, ordered by name, for directory-style lookups."""
        stmt = _identity_query(include_sensitive=False).order_by(
            col(Identity.first_name), col(Identity.last_name), col(Identity.email)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_identities(
        self,
        offset: int = 0,
        limit: int = 20,
        status: IdentityStatus | None = None,
        search: str | None = None,
    ) -> tuple[list[Identity], int]:
        """Page through identities, newest first."""
        filters = []
        if status:
            filters.append(Identity.status == status.value)
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(
                or_(
                    col(Identity.first_name).ilike(pattern),
                    col(Identity.last_name).ilike(pattern),
                    col(Identity.email).ilike(pattern),
                    col(Identity.phone_number).ilike(pattern),
                )
            )

        count_stmt = select(func.count()).select_from(Identity).where(*filters)
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            _identity_query(include_sensitive=False)
            .where(*filters)
            .order_by(col(Identity.created_at).desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def count(self, *filters) -> int:
        stmt = select(func.count()).select_from(Identity).where(*filters)
        return (await self.session.execute(stmt)).scalar_one()

    async def statistics(self, month_start: datetime) -> dict[str, int]:
        """Account counts for the admin dashboard."""
        active = IdentityStatus.ACTIVE.value
        return {
            "total_users": await self.count(),
            "active_users": await self.count(Identity.status == active),
            "inactive_users": await self.count(Identity.status != active),
            "new_users_this_month": await self.count(col(Identity.created_at) >= month_start),
        }

    async def rollback(self) -> None:
        """Discard unflushed changes after a failed transition."""
        await self.session.rollback()
