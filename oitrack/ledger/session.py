# oitrack/ledger/session.py
"""
One open editing session over a task's monthly activity records.

The session keeps unsaved per-month form state in a local cache so a user
can page between months without losing input, and reconciles that cache
against what the task API returns. Only the newest navigation may update
the displayed month; older responses are dropped when they arrive.
"""
import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

from oitrack.ledger.achievement import (
    MonthValue,
    ReverseStrategy,
    calculate_achievement,
    color_hex,
)
from oitrack.ledger.errors import (
    FetchDegradation,
    GatewayError,
    LedgerStateError,
    PersistenceError,
    StaleResponse,
    ValidationError,
)
from oitrack.ledger.gateway import TaskGateway
from oitrack.ledger.metrics import Metric, TaskStatus, unit_for
from oitrack.ledger.records import (
    ActivitySubmission,
    Attachment,
    LedgerTask,
    MonthlyActivityRecord,
    YearlyGoal,
    zero_goals,
)

logger = logging.getLogger(__name__)


class LedgerState(str, Enum):
    CLOSED = "closed"
    LOADING = "loading"
    EDITABLE = "editable"
    READ_ONLY = "readOnly"


class FormState(BaseModel):
    activity_content: str = ""
    status: TaskStatus = TaskStatus.IN_PROGRESS
    actual_value: Optional[float] = None
    activity_id: Optional[int] = None


class LedgerView(BaseModel):
    year: int
    selected_month: int
    state: LedgerState
    is_editable: bool
    can_navigate_forward: bool
    metric: Metric
    unit: str
    actual_value: float
    achievement_rate: float
    color: str
    form: FormState
    degraded: List[str] = []


EDITABLE_FIELDS = {"activity_content", "status", "actual_value"}


def cache_key(year: int, month: int) -> str:
    return f"{year}-{month}"


def previous_month(year: int, month: int) -> Tuple[int, int]:
    return (year - 1, 12) if month == 1 else (year, month - 1)


class MonthlyLedger:
    def __init__(
        self,
        task: LedgerTask,
        gateway: TaskGateway,
        acting_user_id: str,
        today: Tuple[int, int],
        read_only: bool = False,
        initial_month: Optional[int] = None,
        reverse_strategy: Optional[ReverseStrategy] = None,
        previous_limit: int = 12,
    ):
        self.task = task
        self.gateway = gateway
        self.today_year, self.today_month = today
        self.year = self.today_year
        self.editable = (not read_only) and acting_user_id in task.manager_ids
        self.selected_month = initial_month or self.today_month
        self.reverse_strategy = reverse_strategy
        self.previous_limit = previous_limit

        self.state = LedgerState.CLOSED
        self.form = self._blank_form()
        self.local_edit_cache: Dict[str, FormState] = {}
        self.loaded_record: Optional[MonthlyActivityRecord] = None
        self.yearly_goals: List[YearlyGoal] = zero_goals()
        self.previous_activities: List[MonthlyActivityRecord] = []
        self.degraded: List[str] = []
        self._form_key: Optional[str] = None
        self._goals_year: Optional[int] = None
        self._token = 0

    # -- lifecycle --------------------------------------------------------

    async def open(self) -> LedgerView:
        self.state = LedgerState.LOADING
        self.degraded = []
        self._goals_year = None
        try:
            self.previous_activities = await self._read(
                "previous_activities",
                self.gateway.get_previous_activities(self.task.id, self.previous_limit),
            )
        except FetchDegradation as e:
            self._degrade(e)
            self.previous_activities = []
        return await self.load_month(self.year, self.selected_month)

    def close(self) -> None:
        self._token += 1
        self.local_edit_cache.clear()
        self.loaded_record = None
        self.previous_activities = []
        self.yearly_goals = zero_goals()
        self.form = self._blank_form()
        self._form_key = None
        self._goals_year = None
        self.state = LedgerState.CLOSED

    # -- navigation -------------------------------------------------------

    def _next_month(self) -> int:
        return 1 if self.selected_month == 12 else self.selected_month + 1

    @property
    def can_navigate_forward(self) -> bool:
        if not self.editable:
            return True
        # no activity can be logged for a month that has not happened yet
        return self._next_month() <= self.today_month

    async def select_month(self, direction: str) -> LedgerView:
        self._require_open()
        if direction not in ("prev", "next"):
            raise ValueError(f"direction must be 'prev' or 'next', got {direction!r}")

        if direction == "next" and not self.can_navigate_forward:
            logger.debug("Forward navigation blocked at %s-%s", self.year, self.selected_month)
            return self.view

        # the form always belongs to the last month that finished loading
        if self.editable and self._form_key is not None:
            self.local_edit_cache[self._form_key] = self.form.model_copy()

        if direction == "prev":
            self.selected_month = 12 if self.selected_month == 1 else self.selected_month - 1
        else:
            self.selected_month = self._next_month()
        logger.debug("Navigated %s to %s-%s", direction, self.year, self.selected_month)
        return await self.load_month(self.year, self.selected_month)

    async def load_month(self, year: int, month: int) -> LedgerView:
        self._token += 1
        token = self._token
        self.state = LedgerState.LOADING
        self.year, self.selected_month = year, month
        # markers describe the latest load only
        self.degraded = [d for d in self.degraded if d != "monthly_record"]

        try:
            goals = None
            if year != self._goals_year:
                goals = await self._fetch_goals(token, year)
            record = await self._fetch_record(token, year, month)
            form = self._reconcile(year, month, record)
            if form is None:
                form = await self._default_form(token, year, month)
        except StaleResponse:
            logger.info("Discarded stale response for %s-%s", year, month)
            return self.view

        if goals is not None:
            self.yearly_goals = goals
            self._goals_year = year
        self.loaded_record = record
        self.form = form
        self._form_key = cache_key(year, month)
        self.state = LedgerState.EDITABLE if self.editable else LedgerState.READ_ONLY
        return self.view

    async def _fetch_goals(self, token: int, year: int) -> List[YearlyGoal]:
        self.degraded = [d for d in self.degraded if d != "yearly_goals"]
        try:
            goals = await self._read(
                "yearly_goals", self.gateway.get_yearly_goals(self.task.id, year)
            )
        except FetchDegradation as e:
            self._guard(token)
            self._degrade(e)
            return zero_goals()
        self._guard(token)
        return self._pad_goals(goals)

    async def _fetch_record(self, token: int, year: int, month: int) -> Optional[MonthlyActivityRecord]:
        try:
            record = await self.gateway.get_monthly_record(self.task.id, year, month)
        except GatewayError as e:
            self._guard(token)
            logger.warning("Loading %s-%s failed, using defaults: %s", year, month, e)
            self.degraded.append("monthly_record")
            return None
        self._guard(token)
        return record

    def _guard(self, token: int) -> None:
        if token != self._token:
            raise StaleResponse(f"token {token} superseded by {self._token}")

    def _reconcile(self, year: int, month: int, record: Optional[MonthlyActivityRecord]) -> Optional[FormState]:
        key = cache_key(year, month)
        cached = self.local_edit_cache.get(key)

        if cached is not None and record is not None:
            if cached.activity_id is None or cached.activity_id == record.activity_id:
                logger.debug("Cache wins for %s (activity %s)", key, cached.activity_id)
                return cached.model_copy()
            logger.debug(
                "Server wins for %s (cached %s, server %s)", key, cached.activity_id, record.activity_id
            )
            del self.local_edit_cache[key]
            return self._form_from_record(record)
        if cached is not None:
            return cached.model_copy()
        if record is not None:
            return self._form_from_record(record)
        return None

    async def _default_form(self, token: int, year: int, month: int) -> FormState:
        form = self._blank_form()
        if self.task.metric == Metric.PERCENT:
            # a percent snapshot starts from where the previous month left off
            prev_year, prev_month = previous_month(year, month)
            previous = await self._fetch_record(token, prev_year, prev_month)
            form.actual_value = (previous.actual_value or 0) if previous else 0
        else:
            form.actual_value = 0
        return form

    # -- editing ----------------------------------------------------------

    def update_form(self, **changes) -> LedgerView:
        """Apply in-progress edits (activity_content, status, actual_value)."""
        self._require_writable()
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot edit {sorted(unknown)}")
        self.form = FormState(**{**self.form.model_dump(), **changes})
        return self.view

    async def save(self, attachments: Optional[List[Attachment]] = None) -> LedgerView:
        self._require_writable()
        if not self.form.activity_content.strip():
            raise ValidationError("Activity content is required")

        year, month = self.year, self.selected_month
        submission = ActivitySubmission(
            activity_content=self.form.activity_content,
            actual_value=self.form.actual_value if self.task.is_quantitative else None,
            status=self.form.status,
            attachments=attachments or [],
        )
        try:
            saved = await self.gateway.save_monthly_record(self.task.id, year, month, submission)
        except GatewayError as e:
            logger.exception("Saving %s-%s for task %s failed", year, month, self.task.id)
            raise PersistenceError(str(e)) from e

        self.form = self.form.model_copy(update={"activity_id": saved.activity_id})
        self.loaded_record = MonthlyActivityRecord(
            task_id=self.task.id,
            year=year,
            month=month,
            activity_id=saved.activity_id,
            activity_content=self.form.activity_content,
            actual_value=submission.actual_value,
            status=self.form.status,
            created_at=saved.created_at,
            updated_at=saved.updated_at,
        )
        self.local_edit_cache[cache_key(year, month)] = self.form.model_copy()
        if year == self._goals_year and submission.actual_value is not None:
            for goal in self.yearly_goals:
                if goal.month == month:
                    goal.actual_value = submission.actual_value
        return self.view

    # -- read model -------------------------------------------------------

    @property
    def view(self) -> LedgerView:
        others = [
            MonthValue(month=g.month, actual_value=g.actual_value)
            for g in self.yearly_goals
            if g.month != self.selected_month
        ]
        result = calculate_achievement(
            self.task.metric,
            self.task.target_value,
            self.form.actual_value,
            others,
            reverse_yn=self.task.reverse_yn,
            reverse_strategy=self.reverse_strategy,
        )
        return LedgerView(
            year=self.year,
            selected_month=self.selected_month,
            state=self.state,
            is_editable=self.editable,
            can_navigate_forward=self.can_navigate_forward,
            metric=self.task.metric,
            unit=unit_for(self.task.metric),
            actual_value=result.actual_value,
            achievement_rate=result.achievement_rate,
            color=color_hex(result.achievement_rate),
            form=self.form.model_copy(),
            degraded=list(self.degraded),
        )

    # -- helpers ----------------------------------------------------------

    def _blank_form(self) -> FormState:
        return FormState(status=self.task.status)

    @staticmethod
    def _form_from_record(record: MonthlyActivityRecord) -> FormState:
        return FormState(
            activity_content=record.activity_content or "",
            status=record.status or TaskStatus.IN_PROGRESS,
            actual_value=record.actual_value,
            activity_id=record.activity_id,
        )

    @staticmethod
    def _pad_goals(goals: List[YearlyGoal]) -> List[YearlyGoal]:
        by_month = {g.month: g for g in goals}
        return [by_month.get(m, YearlyGoal(month=m)) for m in range(1, 13)]

    def _require_open(self) -> None:
        if self.state == LedgerState.CLOSED:
            raise LedgerStateError("Session is closed")

    def _require_writable(self) -> None:
        self._require_open()
        if not self.editable:
            raise LedgerStateError("Session is read-only")
        if self.state == LedgerState.LOADING:
            raise LedgerStateError("Month is still loading")

    @staticmethod
    async def _read(name: str, pending):
        try:
            return await pending
        except GatewayError as e:
            raise FetchDegradation(name, str(e)) from e

    def _degrade(self, exc: FetchDegradation) -> None:
        logger.warning("Read degraded to defaults: %s", exc)
        self.degraded.append(exc.source)
