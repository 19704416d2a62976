"""
Dismissible user notifications raised by the sync engine.
"""
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional


class AlertLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Alert:
    level: AlertLevel
    remark: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


class AlertCenter:
    def __init__(self, on_change: Optional[Callable[[List[Alert]], None]] = None):
        self._alerts: List[Alert] = []
        self._on_change = on_change

    @property
    def alerts(self) -> List[Alert]:
        return list(self._alerts)

    def add(self, level: AlertLevel, remark: str) -> Alert:
        alert = Alert(level=level, remark=remark)
        self._alerts.append(alert)
        self._changed()
        return alert

    def error(self, remark: str) -> Alert:
        return self.add(AlertLevel.ERROR, remark)

    def dismiss(self, alert_id: str) -> bool:
        before = len(self._alerts)
        self._alerts = [a for a in self._alerts if a.id != alert_id]
        if len(self._alerts) == before:
            return False
        self._changed()
        return True

    def clear(self) -> None:
        self._alerts = []
        self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self.alerts)
