"""Rolling health statistics for completion API calls."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from quizgen.config import MonitorThresholds

RECENT_CALL_LIMIT = 100
ALERT_LOG_LIMIT = 50
RECENT_ALERT_VIEW = 10

AlertSeverity = Literal["warning", "error"]

logger = logging.getLogger(__name__)


def _now_iso() -> str:
  return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class CallRecord:
  success: bool
  duration: float
  status_code: int | None
  timestamp: str
  path: str
  timed_out: bool = False


@dataclass(frozen=True)
class Alert:
  type: str
  message: str
  severity: AlertSeverity
  timestamp: str


@dataclass(frozen=True)
class MonitorStats:
  """Point-in-time view of cumulative and rolling call statistics."""

  total_calls: int
  success_calls: int
  failed_calls: int
  timeout_calls: int
  consecutive_failures: int
  window_size: int
  average_response_time: float
  min_response_time: float
  max_response_time: float
  error_rate: float
  timeout_rate: float
  success_rate: float
  last_error: dict[str, Any] | None
  last_success: str | None
  recent_alerts: list[Alert] = field(default_factory=list)

  def to_dict(self) -> dict[str, Any]:
    return asdict(self)


class ApiMonitor:
  """Aggregates one record per logical completion request and raises advisory alerts."""

  def __init__(self, thresholds: MonitorThresholds | None = None, *, window: int = RECENT_CALL_LIMIT, alert_limit: int = ALERT_LOG_LIMIT) -> None:
    self.thresholds = thresholds or MonitorThresholds()
    self._window = window
    self._alert_limit = alert_limit
    self._lock = threading.Lock()
    self._reset_state()

  def _reset_state(self) -> None:
    self._total = 0
    self._success = 0
    self._failed = 0
    self._timeouts = 0
    self._consecutive_failures = 0
    self._recent: deque[CallRecord] = deque(maxlen=self._window)
    self._alerts: deque[Alert] = deque(maxlen=self._alert_limit)
    self._last_error: dict[str, Any] | None = None
    self._last_success: str | None = None

  def record_call(
    self,
    *,
    success: bool,
    duration: float,
    status_code: int | None = None,
    path: str = "unknown",
    error: BaseException | None = None,
    timed_out: bool = False,
  ) -> list[Alert]:
    """Record a finished logical request and return any alerts it triggered."""
    record = CallRecord(success=success, duration=max(duration, 0.0), status_code=status_code, timestamp=_now_iso(), path=path, timed_out=timed_out and not success)
    with self._lock:
      self._total += 1
      if success:
        self._success += 1
        self._last_success = record.timestamp
        self._consecutive_failures = 0
      else:
        self._failed += 1
        self._consecutive_failures += 1
        if record.timed_out:
          self._timeouts += 1
        self._last_error = {"message": str(error) if error else "Unknown error", "type": type(error).__name__ if error else None, "timestamp": record.timestamp}
      self._recent.append(record)
      alerts = self._check_alerts()
      self._alerts.extend(alerts)

    for alert in alerts:
      level = logging.ERROR if alert.severity == "error" else logging.WARNING
      logger.log(level, "API alert %s: %s", alert.type, alert.message)
    return alerts

  def _rolling(self) -> tuple[float, float, float, float, float]:
    """Return (avg, min, max, error_rate, timeout_rate) over the recent-call window."""
    if not self._recent:
      return 0.0, 0.0, 0.0, 0.0, 0.0
    durations = [record.duration for record in self._recent]
    size = len(self._recent)
    failures = sum(1 for record in self._recent if not record.success)
    timeouts = sum(1 for record in self._recent if record.timed_out)
    return sum(durations) / size, min(durations), max(durations), failures / size, timeouts / size

  def _check_alerts(self) -> list[Alert]:
    average, _, _, error_rate, timeout_rate = self._rolling()
    limits = self.thresholds
    timestamp = _now_iso()
    alerts: list[Alert] = []
    if error_rate > limits.error_rate:
      alerts.append(Alert("HIGH_ERROR_RATE", f"API error rate {error_rate * 100:.1f}% exceeds {limits.error_rate * 100:.0f}%", "warning", timestamp))
    if average > limits.average_response_time:
      alerts.append(Alert("SLOW_RESPONSE", f"API average response time {average:.1f}s exceeds {limits.average_response_time:.0f}s", "warning", timestamp))
    if timeout_rate > limits.timeout_rate:
      alerts.append(Alert("HIGH_TIMEOUT_RATE", f"API timeout rate {timeout_rate * 100:.1f}% exceeds {limits.timeout_rate * 100:.0f}%", "error", timestamp))
    if limits.consecutive_failures and self._consecutive_failures >= limits.consecutive_failures:
      alerts.append(Alert("CONSECUTIVE_FAILURES", f"API failed {self._consecutive_failures} times in a row", "error", timestamp))
    return alerts

  def stats(self) -> MonitorStats:
    with self._lock:
      average, minimum, maximum, error_rate, timeout_rate = self._rolling()
      return MonitorStats(
        total_calls=self._total,
        success_calls=self._success,
        failed_calls=self._failed,
        timeout_calls=self._timeouts,
        consecutive_failures=self._consecutive_failures,
        window_size=len(self._recent),
        average_response_time=average,
        min_response_time=minimum,
        max_response_time=maximum,
        error_rate=error_rate,
        timeout_rate=timeout_rate,
        success_rate=self._success / self._total if self._total else 0.0,
        last_error=dict(self._last_error) if self._last_error else None,
        last_success=self._last_success,
        recent_alerts=list(self._alerts)[-RECENT_ALERT_VIEW:],
      )

  def alerts(self) -> list[Alert]:
    with self._lock:
      return list(self._alerts)

  def recommendations(self, stats: MonitorStats | None = None) -> list[str]:
    stats = stats or self.stats()
    advice: list[str] = []
    if stats.error_rate > 0.1:
      advice.append("Error rate is elevated; check network connectivity and the completion service status.")
    if stats.average_response_time > 30:
      advice.append("Responses are slow; reduce the requested item count or switch to a faster model.")
    if stats.timeout_rate > 0.1:
      advice.append("Timeouts are frequent; raise the per-item timeout or simplify requests.")
    if stats.consecutive_failures >= 2:
      advice.append("Consecutive failures detected; verify that the completion service is up.")
    return advice

  def health_status(self) -> dict[str, Any]:
    """Return a healthy flag, the current stats and operator recommendations."""
    stats = self.stats()
    limits = self.thresholds
    healthy = (
      stats.error_rate < limits.error_rate
      and stats.average_response_time < limits.average_response_time
      and stats.timeout_rate < limits.timeout_rate
      and (not limits.consecutive_failures or stats.consecutive_failures < limits.consecutive_failures)
    )
    return {"healthy": healthy, "stats": stats.to_dict(), "recommendations": self.recommendations(stats)}

  def reset(self) -> None:
    with self._lock:
      self._reset_state()
