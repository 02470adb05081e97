"""Agreement store backed by the `agreements` table (PostgreSQL via asyncpg)."""

import logging

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rulesgate.models.agreement import Agreement
from rulesgate.schemas.agreement import AgreementRecord
from rulesgate.stores.base import StoreError, UniqueViolation

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when an IntegrityError is a unique-constraint failure."""
    orig = getattr(exc, "orig", None)
    for attr in ("sqlstate", "pgcode"):
        if getattr(orig, attr, None) == UNIQUE_VIOLATION_SQLSTATE:
            return True
    error_msg = str(orig) if orig is not None else str(exc)
    return "unique" in error_msg.lower()


class SqlAgreementStore:
    name = "database"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def insert(self, record: AgreementRecord) -> AgreementRecord:
        row = Agreement(
            first_name=record.first_name,
            last_name=record.last_name,
            confirmation_code=record.confirmation_code,
            ip_hash=record.ip_hash,
            user_agent=record.user_agent,
            agreed_at=record.agreed_at,
        )
        async with self._session_factory() as session:
            try:
                session.add(row)
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                if is_unique_violation(exc):
                    raise UniqueViolation(
                        f"Confirmation code {record.confirmation_code} already exists"
                    ) from exc
                raise StoreError(str(exc.orig)) from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("Agreement insert failed: %s", exc)
                raise StoreError(str(exc)) from exc
            await session.refresh(row)
        return AgreementRecord.model_validate(row)

    async def query_all(self) -> list[AgreementRecord]:
        async with self._session_factory() as session:
            try:
                result = await session.execute(
                    select(Agreement).order_by(Agreement.agreed_at.desc())
                )
            except SQLAlchemyError as exc:
                raise StoreError(str(exc)) from exc
            return [AgreementRecord.model_validate(row) for row in result.scalars().all()]

    async def ping(self) -> None:
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))
