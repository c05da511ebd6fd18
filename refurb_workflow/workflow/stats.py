from dataclasses import replace
from datetime import timezone, tzinfo
from zoneinfo import ZoneInfo

from refurb_workflow.database.base import WorkflowStore
from refurb_workflow.workflow.clock import Clock, utc_now
from refurb_workflow.workflow.models import WorkflowStats


class StatsAggregator:
    """Read-only roll-ups over persisted jobs.

    "Today" is the current calendar day in ``timezone_name``.
    """

    def __init__(
        self,
        store: WorkflowStore,
        timezone_name: str = "UTC",
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._zone = _resolve_zone(timezone_name)
        self._clock = clock

    def get_stats(self) -> WorkflowStats:
        local_now = self._clock().astimezone(self._zone)
        day_start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        stats = self._store.aggregate_stats(day_start)
        return replace(stats, avg_cycle_time_hours=round(stats.avg_cycle_time_hours, 1))


def _resolve_zone(name: str) -> tzinfo:
    # UTC must work on hosts without a tz database.
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)
