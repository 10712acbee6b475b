# oitrack/ledger/metrics.py
import logging
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class Metric(str, Enum):
    COUNT = "count"
    AMOUNT = "amount"
    PERCENT = "percent"


class TaskStatus(str, Enum):
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    DELAYED = "delayed"
    STOPPED = "stopped"


class TaskType(str, Enum):
    OI = "oi"
    KEY_FOCUS = "keyFocus"


# Producers send Korean labels and English codes interchangeably
_METRIC_LABELS = {
    "건수": Metric.COUNT,
    "금액": Metric.AMOUNT,
    "%": Metric.PERCENT,
    "count": Metric.COUNT,
    "amount": Metric.AMOUNT,
    "percent": Metric.PERCENT,
}

_STATUS_LABELS = {
    "진행중": TaskStatus.IN_PROGRESS,
    "완료": TaskStatus.COMPLETED,
    "지연": TaskStatus.DELAYED,
    "중단": TaskStatus.STOPPED,
    "inProgress": TaskStatus.IN_PROGRESS,
    "completed": TaskStatus.COMPLETED,
    "delayed": TaskStatus.DELAYED,
    "stopped": TaskStatus.STOPPED,
}

_TASK_TYPE_LABELS = {
    "OI": TaskType.OI,
    "oi": TaskType.OI,
    "중점추진": TaskType.KEY_FOCUS,
    "keyFocus": TaskType.KEY_FOCUS,
    "KEY": TaskType.KEY_FOCUS,
}

_UNITS = {
    Metric.COUNT: "건",
    Metric.AMOUNT: "원",
    Metric.PERCENT: "%",
}

_LABELS = {
    Metric.COUNT: "건수",
    Metric.AMOUNT: "금액",
    Metric.PERCENT: "%",
}

STATUS_TEXT = {
    TaskStatus.IN_PROGRESS: "진행중",
    TaskStatus.COMPLETED: "완료",
    TaskStatus.DELAYED: "지연",
    TaskStatus.STOPPED: "중단",
}


def normalize_metric(raw) -> Metric:
    """Map any metric label to the canonical vocabulary; unknown → percent."""
    if isinstance(raw, Metric):
        return raw
    if raw is None or raw == "":
        return Metric.PERCENT
    metric = _METRIC_LABELS.get(str(raw).strip())
    if metric is None:
        logger.warning('Unknown metric "%s", defaulting to "percent"', raw)
        return Metric.PERCENT
    return metric


def normalize_status(raw) -> TaskStatus:
    """Map any status label to the canonical vocabulary; unknown → inProgress."""
    if isinstance(raw, TaskStatus):
        return raw
    if raw is None or raw == "":
        return TaskStatus.IN_PROGRESS
    status = _STATUS_LABELS.get(str(raw).strip())
    if status is None:
        logger.warning('Unknown status "%s", defaulting to "inProgress"', raw)
        return TaskStatus.IN_PROGRESS
    return status


def normalize_task_type(raw) -> TaskType:
    if isinstance(raw, TaskType):
        return raw
    if raw is None or raw == "":
        return TaskType.OI
    task_type = _TASK_TYPE_LABELS.get(str(raw).strip())
    if task_type is None:
        logger.warning('Unknown task type "%s", defaulting to "oi"', raw)
        return TaskType.OI
    return task_type


def unit_for(metric: Optional[Metric]) -> str:
    return _UNITS.get(metric, _UNITS[Metric.PERCENT])


def label_for(metric: Optional[Metric]) -> str:
    return _LABELS.get(metric, _LABELS[Metric.PERCENT])


def status_text(status) -> str:
    return STATUS_TEXT[normalize_status(status)]
