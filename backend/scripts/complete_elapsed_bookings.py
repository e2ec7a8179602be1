"""
Mark elapsed bookings as completed.

Readers already treat an elapsed ``booked`` booking as completed; this job
persists the transition so history filters on ``status`` see it too. Run it
periodically (cron, systemd timer).

Usage:
    python -m scripts.complete_elapsed_bookings            # dry run
    python -m scripts.complete_elapsed_bookings --execute
"""

from pathlib import Path
import sys

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.orm import Session

from parkbook.database import SessionLocal
from parkbook.domain.time_range import utc_now
from parkbook.repositories.booking_repository import BookingRepository
from parkbook.services.booking_service import BookingService


def complete_elapsed_bookings(db: Session, dry_run: bool = True) -> int:
    """
    Complete every ``booked`` booking whose end time has passed.

    Args:
        db: Database session
        dry_run: If True, only report what would change

    Returns:
        Number of bookings completed (or eligible, on a dry run)
    """
    now = utc_now()
    if dry_run:
        elapsed = BookingRepository(db).list_elapsed_booked(now)
        for booking in elapsed:
            print(f"  would complete {booking.id} (lot {booking.parking_lot_id}, ended {booking.end_time})")
        print(f"DRY RUN: {len(elapsed)} bookings eligible")
        return len(elapsed)

    completed = BookingService(db).complete_elapsed_bookings(now)
    print(f"Completed {completed} bookings")
    return completed


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Complete elapsed bookings")
    parser.add_argument(
        "--execute", action="store_true", help="Actually execute (default is dry run)"
    )
    args = parser.parse_args()

    db = SessionLocal()
    try:
        complete_elapsed_bookings(db, dry_run=not args.execute)
    finally:
        db.close()


if __name__ == "__main__":
    main()
