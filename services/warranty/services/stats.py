"""
Claim Statistics Service
========================

Per-member and global claim counts for the dashboards.

Version: 0.1.0
"""

from collections.abc import Callable
from datetime import datetime

from shared.logging import get_logger
from shared.models.warranty import ClaimStats, utcnow
from services.warranty.repositories.base import ClaimRepository


logger = get_logger(__name__)

MONTHS_OF_HISTORY = 6


def month_keys(now: datetime, months: int = MONTHS_OF_HISTORY) -> list[str]:
    """`YYYY-MM` keys for the last `months` months, oldest first, including now."""
    keys = []
    year, month = now.year, now.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


class ClaimStatsService:
    def __init__(
        self,
        claims: ClaimRepository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.claims = claims
        self.clock = clock

    async def get_claim_stats(self, user_id: str | None = None) -> ClaimStats:
        """Counts per status; the global view adds claims per month."""
        counts = await self.claims.count_by_status(user_id)

        claims_by_month = None
        if user_id is None:
            now = self.clock()
            keys = month_keys(now)
            year, month = (int(part) for part in keys[0].split("-"))
            since = datetime(year, month, 1, tzinfo=now.tzinfo)
            monthly = await self.claims.count_by_month(since)
            claims_by_month = {key: monthly.get(key, 0) for key in keys}

        stats = ClaimStats.from_counts(counts, claims_by_month)
        logger.debug("claim_stats_computed", user_id=user_id, total=stats.total)
        return stats
