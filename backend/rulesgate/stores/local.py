"""Local fallback store used when no database is configured (demo mode).

Layout: a JSON object on disk holding one growable list under a fixed
key, the same shape the rules page used to keep in localStorage:

    {"dkp_agreements": [{"id": 1718..., "first_name": ..., ...}, ...]}

Confirmation-code uniqueness is NOT enforced here.
"""

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path

from rulesgate.schemas.agreement import AgreementRecord
from rulesgate.stores.base import StoreError

logger = logging.getLogger(__name__)

STORAGE_KEY = "dkp_agreements"


class LocalFallbackStore:
    name = "local"

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    # ── key-value area ───────────────────────────────────────

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def _dump(self, data: dict) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)
        tmp.replace(self.path)

    def _append_sync(self, entry: dict) -> None:
        data = self._load()
        data.setdefault(STORAGE_KEY, []).append(entry)
        self._dump(data)

    async def append(self, entry: dict) -> None:
        async with self._lock:
            try:
                await asyncio.to_thread(self._append_sync, entry)
            except (OSError, ValueError) as exc:
                logger.error("Local store write failed: %s", exc)
                raise StoreError(str(exc)) from exc

    async def read_all(self) -> list[dict]:
        try:
            data = await asyncio.to_thread(self._load)
        except (OSError, ValueError) as exc:
            raise StoreError(str(exc)) from exc
        return list(data.get(STORAGE_KEY, []))

    # ── AgreementStore ───────────────────────────────────────

    async def insert(self, record: AgreementRecord) -> AgreementRecord:
        stored = record.model_copy(update={
            "id": int(time.time() * 1000),
            "agreed_at": datetime.now(timezone.utc),
        })
        await self.append(stored.model_dump(mode="json"))
        return stored

    async def query_all(self) -> list[AgreementRecord]:
        records = [AgreementRecord.model_validate(e) for e in await self.read_all()]
        records.sort(key=lambda r: r.agreed_at, reverse=True)
        return records

    async def ping(self) -> None:
        await self.read_all()
