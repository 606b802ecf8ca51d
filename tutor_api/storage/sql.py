"""
Relational usage ledger backed by SQLAlchemy.

Tables mirror the hosted database the web app was deployed against:

    global_usage(date, total_cost, question_count)
    ip_usage(ip_address, date, question_count, total_cost)
    user_usage(user_id, date, count)
    user_profiles(user_id, subscription_plan)

Writes are plain select-then-update/insert; there is no row locking, so two
requests racing on the same row can both pass a quota check before either
commits.
"""

import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, Integer, Numeric, String, select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from tutor_api.models import GlobalUsageRecord, IdentityUsageRecord
from tutor_api.storage.base import UsageStore


class Base(DeclarativeBase):
    pass


class GlobalUsageRow(Base):
    __tablename__ = "global_usage"

    date: Mapped[datetime.date] = mapped_column(Date, primary_key=True)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False, default=Decimal("0"))
    question_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class IpUsageRow(Base):
    __tablename__ = "ip_usage"

    ip_address: Mapped[str] = mapped_column(String(64), primary_key=True)
    date: Mapped[datetime.date] = mapped_column(Date, primary_key=True)
    question_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False, default=Decimal("0"))


class UserUsageRow(Base):
    __tablename__ = "user_usage"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    date: Mapped[datetime.date] = mapped_column(Date, primary_key=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class UserProfileRow(Base):
    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    subscription_plan: Mapped[str] = mapped_column(String(32), nullable=False, default="free")


def _ip_record(row: IpUsageRow) -> IdentityUsageRecord:
    return IdentityUsageRecord(
        identity_key=row.ip_address,
        date=row.date,
        question_count=row.question_count,
        total_cost=Decimal(row.total_cost or 0),
    )


def _user_record(row: UserUsageRow) -> IdentityUsageRecord:
    return IdentityUsageRecord(identity_key=row.user_id, date=row.date, question_count=row.count)


class SqlUsageStore(UsageStore):
    """
    Usage ledger over an async SQLAlchemy engine.

    Args:
        engine: Async engine, e.g. ``postgresql+asyncpg://...`` or
            ``sqlite+aiosqlite:///usage.db``
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.sessions = async_sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str) -> "SqlUsageStore":
        return cls(create_async_engine(url))

    async def create_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def get_global_usage(self, day: datetime.date) -> Optional[GlobalUsageRecord]:
        async with self.sessions() as session:
            row = await session.get(GlobalUsageRow, day)
            if row is None:
                return None
            return GlobalUsageRecord(
                date=row.date, total_cost=Decimal(row.total_cost or 0), question_count=row.question_count
            )

    async def save_global_usage(self, record: GlobalUsageRecord) -> None:
        async with self.sessions() as session:
            row = await session.get(GlobalUsageRow, record.date)
            if row is None:
                row = GlobalUsageRow(date=record.date)
                session.add(row)
            row.total_cost = record.total_cost
            row.question_count = record.question_count
            await session.commit()

    async def get_identity_usage(
        self, scheme: str, identity_key: str, day: datetime.date
    ) -> Optional[IdentityUsageRecord]:
        async with self.sessions() as session:
            if scheme == "user":
                row = await session.get(UserUsageRow, (identity_key, day))
                return _user_record(row) if row else None
            row = await session.get(IpUsageRow, (identity_key, day))
            return _ip_record(row) if row else None

    async def save_identity_usage(self, scheme: str, record: IdentityUsageRecord) -> None:
        async with self.sessions() as session:
            if scheme == "user":
                row = await session.get(UserUsageRow, (record.identity_key, record.date))
                if row is None:
                    row = UserUsageRow(user_id=record.identity_key, date=record.date)
                    session.add(row)
                row.count = record.question_count
            else:
                row = await session.get(IpUsageRow, (record.identity_key, record.date))
                if row is None:
                    row = IpUsageRow(ip_address=record.identity_key, date=record.date)
                    session.add(row)
                row.question_count = record.question_count
                row.total_cost = record.total_cost
            await session.commit()

    async def list_global_usage(self, start: datetime.date, end: datetime.date) -> list[GlobalUsageRecord]:
        stmt = (
            select(GlobalUsageRow)
            .where(GlobalUsageRow.date >= start, GlobalUsageRow.date <= end)
            .order_by(GlobalUsageRow.date.desc())
        )
        async with self.sessions() as session:
            rows = (await session.scalars(stmt)).all()
        return [
            GlobalUsageRecord(date=r.date, total_cost=Decimal(r.total_cost or 0), question_count=r.question_count)
            for r in rows
        ]

    async def list_identity_usage(
        self, scheme: str, start: datetime.date, end: datetime.date
    ) -> list[IdentityUsageRecord]:
        table = UserUsageRow if scheme == "user" else IpUsageRow
        convert = _user_record if scheme == "user" else _ip_record
        stmt = select(table).where(table.date >= start, table.date <= end).order_by(table.date.desc())
        async with self.sessions() as session:
            rows = (await session.scalars(stmt)).all()
        return [convert(r) for r in rows]

    async def get_user_plan(self, user_id: str) -> Optional[str]:
        async with self.sessions() as session:
            row = await session.get(UserProfileRow, user_id)
            return row.subscription_plan if row else None

    async def set_user_plan(self, user_id: str, plan: str) -> None:
        async with self.sessions() as session:
            row = await session.get(UserProfileRow, user_id)
            if row is None:
                session.add(UserProfileRow(user_id=user_id, subscription_plan=plan))
            else:
                row.subscription_plan = plan
            await session.commit()

    async def ping(self) -> bool:
        async with self.engine.connect() as conn:
            await conn.execute(select(1))
        return True
