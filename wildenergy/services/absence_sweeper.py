"""
Absence Sweep Service for Wild Energy
Persists the ``absent`` status of ended bookings that were never checked in
"""
from datetime import datetime
from typing import Dict, Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from wildenergy.core.ledger_rules import ensure_aware, utc_now
from wildenergy.core.logging_config import get_logger
from wildenergy.crud.registrationsCrud import (
    find_absent_registrations,
    mark_absent_registrations,
)

logger = get_logger("services.absence_sweeper")


class AbsenceSweepService:
    """Service to find and mark registrations whose course ended without check-in"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def run(
        self,
        now: Optional[datetime] = None,
        apply: bool = False
    ) -> Dict[str, Any]:
        """
        Sweep ended courses for missing check-ins

        Args:
            now: Reference time (defaults to the current UTC time)
            apply: Write the ``absent`` status; otherwise only report

        Returns:
            Statistics about the sweep
        """
        now = ensure_aware(now or utc_now())
        logger.info(f"Starting absence sweep at {now.isoformat()} (apply={apply})")

        if apply:
            registration_ids = await mark_absent_registrations(self.db, now)
        else:
            registration_ids = await find_absent_registrations(self.db, now)

        stats = {
            "sweep_time": now.isoformat(),
            "applied": apply,
            "absent_count": len(registration_ids),
            "registration_ids": registration_ids,
        }

        logger.info(f"Absence sweep completed: {len(registration_ids)} registration(s) absent")
        return stats
