"""PostgreSQL implementation of UserRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from microcourses.db.tables import UserRow
from microcourses.models.user import User
from microcourses.repos.pg_errors import raise_if_duplicate


class PgUserRepo:
    """Satisfies the UserRepo Protocol using PostgreSQL via SQLAlchemy.

    Every call runs in its own short transaction.
    """

    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def get_by_id(self, user_id: UUID) -> User | None:
        async with self._sessions() as session:
            row = await session.get(UserRow, user_id)
            return _row_to_user(row) if row is not None else None

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(UserRow).where(UserRow.email == email)
        async with self._sessions() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_user(row) if row is not None else None

    async def add(self, user: User) -> None:
        row = UserRow(
            id=user.id,
            email=user.email,
            password_hash=user.password_hash,
            role=user.role,
            approved_creator=user.approved_creator,
            created_at=user.created_at,
        )
        try:
            async with self._sessions() as session, session.begin():
                session.add(row)
        except IntegrityError as exc:
            raise_if_duplicate(exc)
            raise

    async def save(self, user: User) -> None:
        stmt = (
            update(UserRow)
            .where(UserRow.id == user.id)
            .values(
                email=user.email,
                password_hash=user.password_hash,
                role=user.role,
                approved_creator=user.approved_creator,
            )
        )
        try:
            async with self._sessions() as session, session.begin():
                result = await session.execute(stmt)
        except IntegrityError as exc:
            raise_if_duplicate(exc)
            raise
        if result.rowcount == 0:
            raise KeyError("user not found")

    async def find_pending_creators(self, *, offset: int, limit: int) -> list[User]:
        stmt = (
            select(UserRow)
            .where(UserRow.role == "creator", UserRow.approved_creator.is_(False))
            .order_by(UserRow.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_user(r) for r in rows]

    async def count_pending_creators(self) -> int:
        stmt = select(func.count()).select_from(UserRow).where(
            UserRow.role == "creator", UserRow.approved_creator.is_(False)
        )
        async with self._sessions() as session:
            return int((await session.execute(stmt)).scalar_one())


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        role=row.role,
        approved_creator=row.approved_creator,
        created_at=row.created_at,
    )
