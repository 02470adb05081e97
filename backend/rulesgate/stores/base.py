"""Storage interfaces.

Two collaborators sit behind these protocols:

  - AgreementStore    → where signed agreements go (SQL backend or the
                        local JSON fallback, chosen once at startup)
  - SessionFlagStore  → per-session progress flags that expire with the
                        session (Redis, or process memory in development)
"""

from typing import Protocol, runtime_checkable

from rulesgate.schemas.agreement import AgreementRecord


class StoreError(Exception):
    """Any failure reported by an agreement store."""
    pass


class UniqueViolation(StoreError):
    """The confirmation code is already taken."""
    pass


@runtime_checkable
class AgreementStore(Protocol):
    name: str

    async def insert(self, record: AgreementRecord) -> AgreementRecord:
        """Persist a record and return it as stored (with its id).

        Raises UniqueViolation on a confirmation-code collision and
        StoreError for everything else.
        """
        ...

    async def query_all(self) -> list[AgreementRecord]:
        """All records, newest `agreed_at` first."""
        ...

    async def ping(self) -> None:
        ...


@runtime_checkable
class SessionFlagStore(Protocol):
    name: str

    async def is_unlocked(self, session_id: str) -> bool: ...

    async def mark_unlocked(self, session_id: str) -> None: ...

    async def completed(self, session_id: str) -> set[int]: ...

    async def add_completed(self, session_id: str, ordinal: int) -> None: ...

    async def is_signed(self, session_id: str) -> bool: ...

    async def mark_signed(self, session_id: str) -> None: ...

    async def ping(self) -> None: ...
