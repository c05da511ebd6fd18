from collections.abc import Callable
from datetime import datetime, timezone
from unittest.mock import MagicMock

from refurb_workflow.database.models import JobRecord
from refurb_workflow.workflow.engine import WorkflowEngine
from refurb_workflow.workflow.models import WorkflowStats
from refurb_workflow.workflow.states import ProductCategory, RefurbState
from refurb_workflow.workflow.stats import StatsAggregator

from tests.helpers import FixedClock

AdvanceTo = Callable[[str, RefurbState], JobRecord]


def _stats(avg: float = 0.0) -> WorkflowStats:
    return WorkflowStats(
        total=0, by_state={}, by_category={}, completed_today=0, avg_cycle_time_hours=avg
    )


class TestEngineStats:
    def test_empty_store(self, engine: WorkflowEngine) -> None:
        stats = engine.get_stats()
        assert stats.total == 0
        assert stats.by_state == {}
        assert stats.completed_today == 0
        assert stats.avg_cycle_time_hours == 0.0

    def test_counts_completed_today_and_in_progress(
        self, engine: WorkflowEngine, clock: FixedClock, advance_to: AdvanceTo
    ) -> None:
        completed = [engine.create_job(f"DONE-{i}", "PALLET-1", "PHONE") for i in range(3)]
        open_jobs = [engine.create_job(f"OPEN-{i}", "PALLET-2", "LAPTOP") for i in range(2)]
        for job in completed:
            advance_to(job.id, RefurbState.REFURBZ_IN_PROGRESS)
            clock.advance(hours=2)
            advance_to(job.id, RefurbState.REFURBZ_COMPLETE)
        for job in open_jobs:
            advance_to(job.id, RefurbState.REFURBZ_IN_PROGRESS)

        stats = engine.get_stats()

        assert stats.total == 5
        assert stats.completed_today == 3
        assert stats.by_state == {
            RefurbState.REFURBZ_COMPLETE: 3,
            RefurbState.REFURBZ_IN_PROGRESS: 2,
        }
        assert sum(stats.by_state.values()) == 5
        assert stats.by_category == {ProductCategory.PHONE: 3, ProductCategory.LAPTOP: 2}
        assert stats.avg_cycle_time_hours == 2.0

    def test_yesterdays_completions_not_counted_today(
        self, engine: WorkflowEngine, clock: FixedClock, job: JobRecord, advance_to: AdvanceTo
    ) -> None:
        advance_to(job.id, RefurbState.REFURBZ_COMPLETE)
        clock.advance(days=1)
        stats = engine.get_stats()
        assert stats.completed_today == 0
        assert stats.by_state == {RefurbState.REFURBZ_COMPLETE: 1}

    def test_failed_disposition_not_in_cycle_time(
        self, engine: WorkflowEngine, clock: FixedClock, job: JobRecord, advance_to: AdvanceTo
    ) -> None:
        advance_to(job.id, RefurbState.REFURBZ_IN_PROGRESS)
        engine.transition_job(job.id, "ESCALATE")
        clock.advance(hours=5)
        engine.transition_job(job.id, "FAIL")
        stats = engine.get_stats()
        assert stats.completed_today == 0
        assert stats.avg_cycle_time_hours == 0.0


class TestStatsAggregator:
    def test_rounds_average_to_one_decimal(self) -> None:
        store = MagicMock()
        store.aggregate_stats.return_value = _stats(avg=3.14159)
        aggregator = StatsAggregator(store, clock=FixedClock())
        assert aggregator.get_stats().avg_cycle_time_hours == 3.1

    def test_day_start_is_utc_midnight_by_default(self) -> None:
        store = MagicMock()
        store.aggregate_stats.return_value = _stats()
        clock = FixedClock(datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc))

        StatsAggregator(store, clock=clock).get_stats()

        store.aggregate_stats.assert_called_once_with(
            datetime(2026, 3, 10, 0, 0, tzinfo=timezone.utc)
        )

    def test_day_start_follows_configured_timezone(self) -> None:
        store = MagicMock()
        store.aggregate_stats.return_value = _stats()
        clock = FixedClock(datetime(2026, 3, 10, 3, 0, tzinfo=timezone.utc))

        StatsAggregator(store, timezone_name="America/Chicago", clock=clock).get_stats()

        day_start = store.aggregate_stats.call_args.args[0]
        assert day_start.astimezone(timezone.utc) == datetime(
            2026, 3, 9, 5, 0, tzinfo=timezone.utc
        )
