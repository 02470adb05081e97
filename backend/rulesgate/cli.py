"""Management CLI for signed agreements.

Usage:
    python -m rulesgate.cli list-agreements   # Newest first
    python -m rulesgate.cli stats             # Signed today / this week / this month
"""

import asyncio
import sys
from datetime import datetime, timedelta

from rulesgate.config import settings
from rulesgate.schemas.agreement import AgreementRecord
from rulesgate.services.lifecycle import build_agreement_store


def signing_stats(records: list[AgreementRecord], now: datetime | None = None) -> dict[str, int]:
    """Counts of agreements signed since local midnight, 7 days and 30 days before it."""
    now = (now or datetime.now().astimezone()).astimezone()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_ago = today - timedelta(days=7)
    month_ago = today - timedelta(days=30)

    stats = {"total": len(records), "today": 0, "week": 0, "month": 0}
    for record in records:
        agreed = record.agreed_at
        if agreed.tzinfo is None:
            agreed = agreed.astimezone()
        if agreed >= today:
            stats["today"] += 1
        if agreed >= week_ago:
            stats["week"] += 1
        if agreed >= month_ago:
            stats["month"] += 1
    return stats


async def _load() -> list[AgreementRecord]:
    store = build_agreement_store(settings)
    return await store.query_all()


def list_agreements():
    records = asyncio.run(_load())
    for r in records:
        print(f"  {r.confirmation_code}  {r.agreed_at:%Y-%m-%d %H:%M}  {r.first_name} {r.last_name}")
    print(f"\n{len(records)} agreement(s)")


def stats():
    counts = signing_stats(asyncio.run(_load()))
    print(f"  Total:      {counts['total']}")
    print(f"  Today:      {counts['today']}")
    print(f"  This week:  {counts['week']}")
    print(f"  This month: {counts['month']}")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "list-agreements":
        list_agreements()
    elif cmd == "stats":
        stats()
    else:
        print(__doc__)
        sys.exit(1)
