# src/dealengine/domain/alerts.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import List, Literal


class AlertType(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    AlertType.ERROR: 4,
    AlertType.WARNING: 3,
    AlertType.INFO: 2,
    AlertType.SUCCESS: 1,
}


class AlertPriority(IntEnum):
    HIGH = 3
    MEDIUM = 2
    LOW = 1


@dataclass(frozen=True)
class Alert:
    type: AlertType
    priority: AlertPriority
    category: str
    title: str
    message: str
    suggestion: str


@dataclass(frozen=True)
class AlertSummary:
    total: int
    errors: int
    warnings: int
    info: int
    success: int
    high_priority: int


OverallStatus = Literal["CRITICAL", "CAUTION", "EXCELLENT", "GOOD"]


@dataclass
class AlertReport:
    alerts: List[Alert]
    summary: AlertSummary
    overall_status: OverallStatus
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
