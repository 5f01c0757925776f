# storefront/governor.py
import logging

from .cache import utcnow
from .config import (
    CAUTION_THRESHOLD,
    COST_PER_100K_READS,
    EVICTION_FRACTION,
    MAX_DAILY_READS,
    MIN_READ_INTERVAL,
    WARNING_THRESHOLD,
)
from .models import GovernorStats

logger = logging.getLogger("storefront.governor")

DENIED_DAILY_LIMIT = "daily-limit"
DENIED_THROTTLED = "throttled"


class ReadGovernor:
    """
    Gate for every backend read issued on behalf of a visitor.

    Holds a per-day read counter, the time of the last successful read and
    the day stamp the counter belongs to. admit() is a pure admission check
    apart from the day rollover; only record_read() moves the counters, and
    it must be called after the backend read has succeeded.

    admit() and record_read() are not atomic across an awaited backend
    call, so a burst of concurrent lookups can all be admitted before any of
    them records its read.

    Args:
        max_daily_reads (int): Hard ceiling of admitted reads per UTC day
        min_read_interval (timedelta): Minimum spacing between reads
        clock (callable): Returns the current aware datetime
        eviction_fraction (float): Share of the cache dropped by maybe_evict()
    """

    def __init__(
        self,
        max_daily_reads=MAX_DAILY_READS,
        min_read_interval=MIN_READ_INTERVAL,
        clock=utcnow,
        eviction_fraction=EVICTION_FRACTION,
        warning_threshold=WARNING_THRESHOLD,
        caution_threshold=CAUTION_THRESHOLD,
    ):
        self.max_daily_reads = max_daily_reads
        self.min_read_interval = min_read_interval
        self.eviction_fraction = eviction_fraction
        self.warning_threshold = warning_threshold
        self.caution_threshold = caution_threshold
        self._clock = clock
        self.daily_count = 0
        self.day_stamp = clock().date()
        self.last_read_at = None
        self.last_denial = None
        self._announced = set()

    def _roll_day(self, now):
        today = now.date()
        if today != self.day_stamp:
            logger.info(
                f"New day {today.isoformat()}, resetting read counter "
                f"({self.daily_count} reads on {self.day_stamp.isoformat()})"
            )
            self.daily_count = 0
            self.day_stamp = today
            self._announced.clear()

    def admit(self):
        """
        Decide whether one more backend read may be attempted now.

        Checks, in order, short-circuiting on the first failure:
            1. Day rollover resets the counter
            2. Daily ceiling reached -> deny ("daily-limit")
            3. Last read closer than min_read_interval -> deny ("throttled")

        Returns:
            bool: True if the read may proceed

        Note:
            A denial is not an error. The reason is kept in last_denial for
            logging and the dashboard.
        """
        now = self._clock()
        self._roll_day(now)

        if self.daily_count >= self.max_daily_reads:
            return self._deny(DENIED_DAILY_LIMIT)

        if (
            self.last_read_at is not None
            and now - self.last_read_at < self.min_read_interval
        ):
            return self._deny(DENIED_THROTTLED)

        self.last_denial = None
        return True

    def _deny(self, reason):
        self.last_denial = reason
        logger.warning(
            f"Backend read denied ({reason}): "
            f"{self.daily_count}/{self.max_daily_reads} reads today"
        )
        return False

    def record_read(self):
        now = self._clock()
        self._roll_day(now)
        self.daily_count += 1
        self.last_read_at = now
        self._announce_thresholds()

    def _announce_thresholds(self):
        ratio = self.usage_ratio()
        for name, threshold in (
            ("warning", self.warning_threshold),
            ("caution", self.caution_threshold),
        ):
            if ratio >= threshold:
                if name not in self._announced:
                    self._announced.add(name)
                    logger.warning(
                        f"Daily reads at {ratio:.0%} of limit ({name} threshold)"
                    )
                break

    def maybe_evict(self, cache):
        """Evict the oldest share of cache entries when the cache is full."""
        if len(cache) >= cache.capacity:
            return cache.evict_oldest(self.eviction_fraction)
        return []

    def usage_ratio(self, count=None):
        if count is None:
            count = self.daily_count
        if self.max_daily_reads <= 0:
            return 1.0
        return count / self.max_daily_reads

    def level(self, ratio=None):
        if ratio is None:
            ratio = self.usage_ratio()
        if ratio >= self.warning_threshold:
            return "warning"
        if ratio >= self.caution_threshold:
            return "caution"
        return "ok"

    def stats(self, cache):
        """
        Snapshot for the cost-monitoring dashboard.

        Read-only: does not roll the day over or touch any counter, so a
        dashboard polling it never changes admission decisions. Once the
        UTC day has changed the stored count belongs to the previous day
        and today's reads are reported as 0.
        """
        reads = self.daily_count
        if self.day_stamp != self._clock().date():
            reads = 0
        ratio = self.usage_ratio(reads)
        daily_cost = self.max_daily_reads * COST_PER_100K_READS / 100000
        return GovernorStats(
            daily_reads=reads,
            max_daily_reads=self.max_daily_reads,
            cache_size=len(cache),
            max_cache_size=cache.capacity,
            usage_ratio=ratio,
            level=self.level(ratio),
            daily_cost_at_limit=daily_cost,
            monthly_cost_at_limit=daily_cost * 30,
            yearly_cost_at_limit=daily_cost * 365,
        )
