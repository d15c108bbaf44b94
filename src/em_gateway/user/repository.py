"""UserRepository — raw SQL reads of user flags for other bounded contexts.

Order completion needs the seller's verification flag for the fund hold;
admin moderation flips the ban flag. Neither touches role.
"""

from dataclasses import dataclass
from typing import Any, Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.enums import UserRole

_GET_PROFILE_SQL = text("""
    SELECT id, username, role, is_banned, verified
    FROM users WHERE id = :id
""")

_SET_BANNED_SQL = text("""
    UPDATE users
    SET is_banned = :is_banned, updated_at = NOW()
    WHERE id = :id
    RETURNING id, username, role, is_banned, verified
""")


@dataclass
class UserProfile:
    id: str
    username: str
    role: str
    is_banned: bool
    verified: bool

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def _row_to_profile(row: Any) -> UserProfile:
    return UserProfile(
        id=str(row.id),
        username=row.username,
        role=row.role,
        is_banned=row.is_banned,
        verified=row.verified,
    )


class UserRepositoryProtocol(Protocol):
    async def get_profile(self, user_id: str, db: AsyncSession) -> UserProfile | None: ...

    async def set_banned(
        self, user_id: str, is_banned: bool, db: AsyncSession
    ) -> UserProfile | None: ...


class UserRepository:
    async def get_profile(self, user_id: str, db: AsyncSession) -> UserProfile | None:
        result = await db.execute(_GET_PROFILE_SQL, {"id": user_id})
        row = result.fetchone()
        return _row_to_profile(row) if row else None

    async def set_banned(
        self, user_id: str, is_banned: bool, db: AsyncSession
    ) -> UserProfile | None:
        result = await db.execute(_SET_BANNED_SQL, {"id": user_id, "is_banned": is_banned})
        row = result.fetchone()
        return _row_to_profile(row) if row else None
