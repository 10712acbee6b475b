import anyio
import pytest

from oitrack.ledger.achievement import mirrored_linear
from oitrack.ledger.errors import (
    GatewayError,
    LedgerStateError,
    PersistenceError,
    ValidationError,
)
from oitrack.ledger.metrics import Metric, TaskStatus
from oitrack.ledger.records import (
    LedgerTask,
    MonthlyActivityRecord,
    SavedRecord,
    YearlyGoal,
)
from oitrack.ledger.session import FormState, LedgerState, MonthlyLedger, cache_key

pytestmark = pytest.mark.anyio

TODAY = (2026, 10)


class FakeGateway:
    """In-memory task API. `gates` holds back monthly reads until released."""

    def __init__(self, records=None, goals=None, previous=None):
        self.records = dict(records or {})
        self.goals = goals or {}
        self.goal_reads = []
        self.previous = previous or []
        self.gates = {}
        self.fail = set()
        self.saved = []
        self._next_id = 100

    async def get_monthly_record(self, task_id, year, month):
        gate = self.gates.get((year, month))
        if gate is not None:
            await gate.wait()
        if "get" in self.fail:
            raise GatewayError("read failed", status_code=500)
        return self.records.get((year, month))

    async def save_monthly_record(self, task_id, year, month, submission):
        if "save" in self.fail:
            raise GatewayError("write failed", status_code=500)
        existing = self.records.get((year, month))
        activity_id = existing.activity_id if existing else self._next_id
        self._next_id += 1
        self.records[(year, month)] = MonthlyActivityRecord(
            task_id=task_id,
            year=year,
            month=month,
            activity_id=activity_id,
            activity_content=submission.activity_content,
            actual_value=submission.actual_value,
            status=submission.status,
        )
        self.saved.append((year, month, submission))
        return SavedRecord(activity_id=activity_id)

    async def get_yearly_goals(self, task_id, year):
        self.goal_reads.append(year)
        if "goals" in self.fail:
            raise GatewayError("goals unavailable", status_code=503)
        return self.goals.get(year, [])

    async def get_previous_activities(self, task_id, limit):
        if "previous" in self.fail:
            raise GatewayError("previous unavailable")
        return self.previous[:limit]


def record(year, month, content, actual=None, activity_id=None):
    return MonthlyActivityRecord(
        task_id=1,
        year=year,
        month=month,
        activity_id=activity_id or year * 100 + month,
        activity_content=content,
        actual_value=actual,
        status="진행중",
    )


def make_task(**overrides):
    fields = dict(
        id=1,
        name="원가 절감",
        metric="amount",
        target_value=1_000_000,
        manager_ids=["u1"],
    )
    fields.update(overrides)
    return LedgerTask(**fields)


def make_ledger(gateway, task=None, user="u1", today=TODAY, **kw):
    return MonthlyLedger(task or make_task(), gateway, user, today, **kw)


async def test_open_starts_at_current_month_and_is_editable_for_managers():
    ledger = make_ledger(FakeGateway())
    view = await ledger.open()
    assert view.selected_month == 10
    assert view.state == LedgerState.EDITABLE
    assert view.is_editable
    assert view.unit == "원"
    assert view.form.actual_value == 0


async def test_non_manager_gets_read_only_session():
    ledger = make_ledger(FakeGateway(), user="u9")
    view = await ledger.open()
    assert view.state == LedgerState.READ_ONLY
    assert not view.is_editable
    with pytest.raises(LedgerStateError):
        ledger.update_form(activity_content="nope")
    with pytest.raises(LedgerStateError):
        await ledger.save()


async def test_read_only_flag_overrides_manager():
    ledger = make_ledger(FakeGateway(), read_only=True)
    view = await ledger.open()
    assert view.state == LedgerState.READ_ONLY


async def test_backward_navigation_wraps_to_december():
    ledger = make_ledger(FakeGateway(), initial_month=1)
    await ledger.open()
    view = await ledger.select_month("prev")
    assert view.selected_month == 12
    assert view.year == 2026


async def test_forward_navigation_wraps_to_january():
    ledger = make_ledger(FakeGateway(), read_only=True, initial_month=12)
    await ledger.open()
    view = await ledger.select_month("next")
    assert view.selected_month == 1


async def test_editable_session_cannot_move_past_current_month():
    gateway = FakeGateway()
    ledger = make_ledger(gateway)
    view = await ledger.open()
    assert not view.can_navigate_forward

    view = await ledger.select_month("next")
    assert view.selected_month == 10
    assert view.state == LedgerState.EDITABLE

    view = await ledger.select_month("prev")
    assert view.can_navigate_forward


async def test_read_only_session_may_browse_future_months():
    ledger = make_ledger(FakeGateway(), read_only=True)
    await ledger.open()
    view = await ledger.select_month("next")
    assert view.selected_month == 11


async def test_invalid_direction_is_rejected():
    ledger = make_ledger(FakeGateway())
    await ledger.open()
    with pytest.raises(ValueError):
        await ledger.select_month("sideways")


async def test_unsaved_edits_survive_navigation():
    ledger = make_ledger(FakeGateway())
    await ledger.open()
    ledger.update_form(activity_content="draft for october", actual_value=1234)

    await ledger.select_month("prev")
    assert ledger.form.activity_content == ""
    assert cache_key(2026, 10) in ledger.local_edit_cache

    view = await ledger.select_month("next")
    assert view.form.activity_content == "draft for october"
    assert view.form.actual_value == 1234


async def test_draft_without_id_wins_over_server_record():
    gateway = FakeGateway(records={(2026, 9): record(2026, 9, "server text", 10, activity_id=42)})
    ledger = make_ledger(gateway)
    await ledger.open()
    ledger.local_edit_cache[cache_key(2026, 9)] = FormState(activity_content="my draft", actual_value=7)

    view = await ledger.select_month("prev")
    assert view.form.activity_content == "my draft"
    assert view.form.actual_value == 7


async def test_draft_with_same_id_wins_over_server_record():
    gateway = FakeGateway(records={(2026, 9): record(2026, 9, "server text", 10, activity_id=42)})
    ledger = make_ledger(gateway)
    await ledger.open()
    ledger.local_edit_cache[cache_key(2026, 9)] = FormState(activity_content="edited", activity_id=42)

    view = await ledger.select_month("prev")
    assert view.form.activity_content == "edited"


async def test_server_wins_when_ids_differ_and_stale_draft_is_dropped():
    gateway = FakeGateway(records={(2026, 9): record(2026, 9, "server text", 10, activity_id=42)})
    ledger = make_ledger(gateway)
    await ledger.open()
    ledger.local_edit_cache[cache_key(2026, 9)] = FormState(activity_content="old", activity_id=43)

    view = await ledger.select_month("prev")
    assert view.form.activity_content == "server text"
    assert view.form.activity_id == 42
    assert cache_key(2026, 9) not in ledger.local_edit_cache


async def test_server_record_fills_form_when_no_draft():
    gateway = FakeGateway(records={(2026, 10): record(2026, 10, "done", 5, activity_id=9)})
    ledger = make_ledger(gateway)
    view = await ledger.open()
    assert view.form.activity_content == "done"
    assert view.form.status == TaskStatus.IN_PROGRESS
    assert ledger.loaded_record.activity_id == 9


async def test_percent_month_starts_from_previous_month_value():
    gateway = FakeGateway(records={(2026, 9): record(2026, 9, "sep", 40)})
    ledger = make_ledger(gateway, task=make_task(metric="%", target_value=80))
    view = await ledger.open()
    assert view.form.actual_value == 40
    assert view.actual_value == 40
    assert view.achievement_rate == pytest.approx(50.0)


async def test_percent_january_looks_back_to_previous_december():
    gateway = FakeGateway(records={(2025, 12): record(2025, 12, "dec", 65)})
    ledger = make_ledger(gateway, task=make_task(metric="percent", target_value=100), initial_month=1)
    view = await ledger.open()
    assert view.form.actual_value == 65


async def test_percent_without_history_starts_at_zero():
    ledger = make_ledger(FakeGateway(), task=make_task(metric="percent", target_value=80))
    view = await ledger.open()
    assert view.form.actual_value == 0
    assert view.achievement_rate == 0


async def test_amount_accumulates_other_months_from_yearly_goals():
    goals = {2026: [YearlyGoal(month=10, target_value=83_333, actual_value=300_000)]}
    gateway = FakeGateway(goals=goals)
    ledger = make_ledger(gateway, today=(2026, 11))
    await ledger.open()
    view = ledger.update_form(actual_value=200_000)
    assert view.actual_value == 500_000
    assert view.achievement_rate == pytest.approx(50.0)


async def test_reverse_task_uses_configured_strategy():
    task = make_task(metric="percent", target_value=100, reverse_yn=True)
    ledger = make_ledger(FakeGateway(), task=task, reverse_strategy=mirrored_linear)
    await ledger.open()
    view = ledger.update_form(actual_value=80)
    assert view.achievement_rate == pytest.approx(120.0)


async def test_update_form_rejects_unknown_fields():
    ledger = make_ledger(FakeGateway())
    await ledger.open()
    with pytest.raises(ValueError):
        ledger.update_form(activity_id=5)


async def test_save_requires_activity_text():
    gateway = FakeGateway()
    ledger = make_ledger(gateway)
    await ledger.open()
    ledger.update_form(activity_content="   ")
    with pytest.raises(ValidationError):
        await ledger.save()
    assert gateway.saved == []
    assert ledger.state == LedgerState.EDITABLE


async def test_save_records_id_and_refreshes_cumulative_actual():
    goals = {2026: [YearlyGoal(month=9, actual_value=300_000)]}
    gateway = FakeGateway(goals=goals)
    ledger = make_ledger(gateway)
    await ledger.open()
    ledger.update_form(activity_content="협력사 단가 재협상", actual_value=200_000, status=TaskStatus.DELAYED)

    view = await ledger.save()
    assert view.form.activity_id == 100
    assert ledger.loaded_record.activity_id == 100
    assert ledger.local_edit_cache[cache_key(2026, 10)].activity_id == 100
    assert ledger.yearly_goals[9].actual_value == 200_000
    assert view.actual_value == 500_000

    year, month, submission = gateway.saved[0]
    assert (year, month) == (2026, 10)
    assert submission.status == TaskStatus.DELAYED


async def test_saved_month_round_trips_through_navigation():
    gateway = FakeGateway()
    ledger = make_ledger(gateway)
    await ledger.open()
    ledger.update_form(activity_content="saved text", actual_value=10)
    await ledger.save()

    await ledger.select_month("prev")
    view = await ledger.select_month("next")
    assert view.form.activity_content == "saved text"
    assert view.form.activity_id == 100


async def test_qualitative_task_never_submits_a_value():
    gateway = FakeGateway()
    ledger = make_ledger(gateway, task=make_task(evaluation_type="qualitative"))
    await ledger.open()
    ledger.update_form(activity_content="정성 평가 활동", actual_value=99)
    await ledger.save()
    assert gateway.saved[0][2].actual_value is None


async def test_failed_save_raises_persistence_error_and_keeps_form():
    gateway = FakeGateway()
    gateway.fail.add("save")
    ledger = make_ledger(gateway)
    await ledger.open()
    ledger.update_form(activity_content="keep me")

    with pytest.raises(PersistenceError):
        await ledger.save()
    assert ledger.form.activity_content == "keep me"
    assert ledger.form.activity_id is None
    assert ledger.state == LedgerState.EDITABLE


async def test_latest_navigation_wins():
    gateway = FakeGateway(records={
        (2026, 9): record(2026, 9, "september"),
        (2026, 8): record(2026, 8, "august"),
    })
    ledger = make_ledger(gateway)
    await ledger.open()
    gateway.gates = {(2026, 9): anyio.Event(), (2026, 8): anyio.Event()}

    async with anyio.create_task_group() as tg:
        tg.start_soon(ledger.select_month, "prev")
        await anyio.wait_all_tasks_blocked()
        tg.start_soon(ledger.select_month, "prev")
        await anyio.wait_all_tasks_blocked()
        assert ledger.state == LedgerState.LOADING

        gateway.gates[(2026, 8)].set()
        await anyio.wait_all_tasks_blocked()
        gateway.gates[(2026, 9)].set()

    assert ledger.selected_month == 8
    assert ledger.form.activity_content == "august"
    assert ledger.state == LedgerState.EDITABLE


async def test_stale_response_after_close_is_ignored():
    gateway = FakeGateway(records={(2026, 9): record(2026, 9, "september")})
    ledger = make_ledger(gateway)
    await ledger.open()
    gateway.gates = {(2026, 9): anyio.Event()}

    async with anyio.create_task_group() as tg:
        tg.start_soon(ledger.select_month, "prev")
        await anyio.wait_all_tasks_blocked()
        ledger.close()
        gateway.gates[(2026, 9)].set()

    assert ledger.state == LedgerState.CLOSED
    assert ledger.form.activity_content == ""


async def test_editing_is_refused_while_loading():
    gateway = FakeGateway()
    ledger = make_ledger(gateway)
    await ledger.open()
    gateway.gates = {(2026, 9): anyio.Event()}

    async with anyio.create_task_group() as tg:
        tg.start_soon(ledger.select_month, "prev")
        await anyio.wait_all_tasks_blocked()
        with pytest.raises(LedgerStateError):
            ledger.update_form(activity_content="too early")
        gateway.gates[(2026, 9)].set()


async def test_close_discards_drafts_and_blocks_use():
    ledger = make_ledger(FakeGateway())
    await ledger.open()
    ledger.update_form(activity_content="draft")
    await ledger.select_month("prev")
    assert ledger.local_edit_cache

    ledger.close()
    assert ledger.local_edit_cache == {}
    assert ledger.state == LedgerState.CLOSED
    with pytest.raises(LedgerStateError):
        await ledger.select_month("prev")


async def test_failed_reads_degrade_to_defaults():
    gateway = FakeGateway()
    gateway.fail.update({"goals", "previous", "get"})
    ledger = make_ledger(gateway)
    view = await ledger.open()

    assert view.state == LedgerState.EDITABLE
    assert set(view.degraded) == {"yearly_goals", "previous_activities", "monthly_record"}
    assert [g.actual_value for g in ledger.yearly_goals] == [0] * 12
    assert ledger.previous_activities == []
    assert view.form.actual_value == 0


async def test_previous_activities_are_loaded_on_open():
    previous = [record(2026, 9, "sep"), record(2026, 8, "aug")]
    ledger = make_ledger(FakeGateway(previous=previous), previous_limit=1)
    await ledger.open()
    assert [r.activity_content for r in ledger.previous_activities] == ["sep"]


async def test_metric_labels_from_producers_are_normalized():
    ledger = make_ledger(FakeGateway(), task=make_task(metric="건수", target_value=12))
    view = await ledger.open()
    assert view.metric == Metric.COUNT
    assert view.unit == "건"


async def test_degraded_marker_tracks_the_latest_month_load():
    gateway = FakeGateway()
    ledger = make_ledger(gateway)
    await ledger.open()

    gateway.fail.add("get")
    view = await ledger.select_month("prev")
    assert view.degraded == ["monthly_record"]
    view = await ledger.select_month("prev")
    assert view.degraded == ["monthly_record"]

    gateway.fail.clear()
    view = await ledger.select_month("next")
    assert view.degraded == []


async def test_loading_another_year_uses_that_years_goals():
    gateway = FakeGateway(goals={
        2026: [YearlyGoal(month=9, actual_value=300_000)],
        2025: [YearlyGoal(month=4, actual_value=50_000)],
    })
    ledger = make_ledger(gateway)
    view = await ledger.open()
    assert view.actual_value == 300_000

    view = await ledger.load_month(2025, 5)
    assert view.year == 2025
    assert view.actual_value == 50_000
    assert gateway.goal_reads == [2026, 2025]

    await ledger.select_month("prev")
    assert gateway.goal_reads == [2026, 2025]


async def test_goals_failure_for_another_year_falls_back_to_zero():
    gateway = FakeGateway(goals={2026: [YearlyGoal(month=9, actual_value=300_000)]})
    ledger = make_ledger(gateway)
    await ledger.open()

    gateway.fail.add("goals")
    view = await ledger.load_month(2025, 5)
    assert view.actual_value == 0
    assert view.degraded == ["yearly_goals"]
