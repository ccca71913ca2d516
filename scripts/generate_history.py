"""
Seed the JSON history file with synthetic dock activity.

Creates door arrivals and departures spread over the last few days so the
analytics tab has something to chart. Uses the configured DATA_DIR.

Usage:
    python scripts/generate_history.py --days 7 --trailers 40
"""
import argparse
import asyncio
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dockboard.config import settings
from dockboard.models.history import HistoryAction, HistoryEntry
from dockboard.stores.json_file import JsonHistoryStore

CARRIERS = ["Swift", "Schneider", "J.B. Hunt", "Werner", "Knight", "Prime"]
CUSTOMERS = ["Acme Foods", "Northwind", "Contoso", "Globex"]


def build_entries(days: int, trailers: int, doors: int) -> list:
    now = datetime.now(timezone.utc)
    entries = []
    for i in range(trailers):
        trailer_id = f"seed-{i:04d}"
        carrier = random.choice(CARRIERS)
        customer = random.choice(CUSTOMERS)
        door = random.randint(1, doors)
        arrived = now - timedelta(days=random.uniform(0, days))
        departed = arrived + timedelta(hours=random.uniform(0.25, 5))
        common = {
            "trailerId": trailer_id,
            "trailerNumber": f"T{1000 + i}",
            "carrier": carrier,
        }
        entries.append(HistoryEntry(
            action=HistoryAction.MOVED_TO_DOOR.value,
            timestamp=arrived,
            doorNumber=door,
            customer=customer,
            previousLocation="Unassigned Yard",
            **common,
        ))
        if departed < now:
            entries.append(HistoryEntry(
                action=HistoryAction.MOVED_TO_YARD.value,
                timestamp=departed,
                fromDoor=door,
                doorNumber=door,
                toLocation="Yard",
                **common,
            ))
    entries.sort(key=lambda e: e.timestamp)
    return entries


async def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--days", type=int, default=7)
    parser.add_argument("--trailers", type=int, default=40)
    parser.add_argument("--doors", type=int, default=settings.DEFAULT_DOOR_COUNT)
    parser.add_argument("--data-dir", default=settings.DATA_DIR)
    args = parser.parse_args()

    store = JsonHistoryStore(args.data_dir, limit=settings.HISTORY_LIMIT)
    entries = build_entries(args.days, args.trailers, args.doors)
    await store.append_many(entries)
    print(f"Wrote {len(entries)} history entries to {store.file.path}")


if __name__ == "__main__":
    asyncio.run(main())
