import argparse
import asyncio
from datetime import datetime, timezone

from wildenergy.core.logging_config import setup_logging
from wildenergy.db.postgresql import SessionLocal
from wildenergy.services.absence_sweeper import AbsenceSweepService


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Mark ended registrations without check-in as absent."
    )
    parser.add_argument(
        "--at",
        type=datetime.fromisoformat,
        default=None,
        help="Reference time in ISO format (defaults to now).",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply changes (updates registration statuses).",
    )
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    setup_logging()

    now = args.at or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    if not args.apply:
        print("Dry run. Run with --apply to modify data.")

    async with SessionLocal() as db:
        stats = await AbsenceSweepService(db).run(now=now, apply=args.apply)

    print("=== Absence Sweep Summary ===")
    print(f"Reference time: {stats['sweep_time']}")
    print(f"Applied: {stats['applied']}")
    print(f"Absent registrations: {stats['absent_count']}")
    for registration_id in stats["registration_ids"]:
        print(f"  registration {registration_id}")


if __name__ == "__main__":
    asyncio.run(main())
