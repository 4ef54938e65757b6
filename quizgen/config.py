"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv(override=False)

DEFAULT_API_URL = "https://dashscope.aliyuncs.com/api/v1/services/aigc/text-generation/generation"
DEFAULT_MODEL = "qwen-plus-2025-01-25"
DIFFICULTY_LEVELS = ("简单", "中等", "困难")


@dataclass(frozen=True)
class SamplingParams:
  """Sampling parameters forwarded to the completion endpoint."""

  temperature: float
  top_p: float
  max_tokens: int

  def as_payload(self) -> dict[str, float | int]:
    return {"temperature": self.temperature, "top_p": self.top_p, "max_tokens": self.max_tokens}


@dataclass(frozen=True)
class MonitorThresholds:
  """Alert thresholds for the API health monitor."""

  error_rate: float = 0.3
  average_response_time: float = 60.0
  timeout_rate: float = 0.2
  consecutive_failures: int = 3


@dataclass(frozen=True)
class Settings:
  """Typed settings for the quiz generation service."""

  environment: str
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  api_url: str
  api_key: str | None
  model: str
  base_timeout: float
  per_item_timeout: float
  max_timeout: float
  retry_timeout_multiplier: float
  max_retries: int
  retry_base_delay: float
  retry_max_delay: float
  slow_response_ratio: float
  default_sampling: SamplingParams
  retry_sampling: SamplingParams
  min_overall_score: float
  max_regeneration_count: int
  min_item_count: int
  max_item_count: int
  default_item_count: int
  default_difficulty: str
  task_sweep_interval: float
  task_retention: float
  monitor_thresholds: MonitorThresholds
  parse_cache_ttl: float


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _positive_float(name: str, default: str) -> float:
  raw = os.getenv(name, default)
  try:
    value = float(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be a number.") from exc
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _number(name: str, default: str) -> float:
  raw = os.getenv(name, default)
  try:
    return float(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be a number.") from exc


def _positive_int(name: str, default: str) -> int:
  value = _non_negative_int(name, default)
  if value == 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _non_negative_int(name: str, default: str) -> int:
  raw = os.getenv(name, default)
  try:
    value = int(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be an integer.") from exc
  if value < 0:
    raise ValueError(f"{name} must be zero or a positive integer.")
  return value


def _ratio(name: str, default: str) -> float:
  value = _positive_float(name, default)
  if value > 1:
    raise ValueError(f"{name} must be between 0 and 1.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("QUIZGEN_ENV", "development").lower()
  debug = _parse_bool(os.getenv("QUIZGEN_DEBUG"))

  log_max_bytes = _positive_int("QUIZGEN_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = _non_negative_int("QUIZGEN_LOG_BACKUP_COUNT", "10")

  base_timeout = _positive_float("QUIZGEN_BASE_TIMEOUT", "60")
  per_item_timeout = _positive_float("QUIZGEN_PER_ITEM_TIMEOUT", "8")
  max_timeout = _positive_float("QUIZGEN_MAX_TIMEOUT", "120")
  if max_timeout < base_timeout:
    raise ValueError("QUIZGEN_MAX_TIMEOUT must not be lower than QUIZGEN_BASE_TIMEOUT.")

  retry_base_delay = _positive_float("QUIZGEN_RETRY_BASE_DELAY", "2")
  retry_max_delay = _positive_float("QUIZGEN_RETRY_MAX_DELAY", "10")
  if retry_max_delay < retry_base_delay:
    raise ValueError("QUIZGEN_RETRY_MAX_DELAY must not be lower than QUIZGEN_RETRY_BASE_DELAY.")

  min_item_count = _positive_int("QUIZGEN_MIN_ITEM_COUNT", "1")
  max_item_count = _non_negative_int("QUIZGEN_MAX_ITEM_COUNT", "50")
  default_item_count = _non_negative_int("QUIZGEN_DEFAULT_ITEM_COUNT", "5")
  if not min_item_count <= default_item_count <= max_item_count:
    raise ValueError("QUIZGEN_DEFAULT_ITEM_COUNT must fall within the configured item count range.")
  default_difficulty = (os.getenv("QUIZGEN_DEFAULT_DIFFICULTY") or "中等").strip()
  if default_difficulty not in DIFFICULTY_LEVELS:
    raise ValueError(f"QUIZGEN_DEFAULT_DIFFICULTY must be one of: {', '.join(DIFFICULTY_LEVELS)}.")

  default_sampling = SamplingParams(
    temperature=_number("QUIZGEN_TEMPERATURE", "0.7"),
    top_p=_ratio("QUIZGEN_TOP_P", "0.95"),
    max_tokens=_non_negative_int("QUIZGEN_MAX_TOKENS", "4048"),
  )
  retry_sampling = SamplingParams(
    temperature=_number("QUIZGEN_RETRY_TEMPERATURE", "0.5"),
    top_p=_ratio("QUIZGEN_RETRY_TOP_P", "0.9"),
    max_tokens=_non_negative_int("QUIZGEN_RETRY_MAX_TOKENS", "2048"),
  )

  monitor_thresholds = MonitorThresholds(
    error_rate=_ratio("QUIZGEN_MONITOR_ERROR_RATE", "0.3"),
    average_response_time=_positive_float("QUIZGEN_MONITOR_AVG_RESPONSE_SECONDS", "60"),
    timeout_rate=_ratio("QUIZGEN_MONITOR_TIMEOUT_RATE", "0.2"),
    consecutive_failures=_non_negative_int("QUIZGEN_MONITOR_CONSECUTIVE_FAILURES", "3"),
  )

  return Settings(
    environment=environment,
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("QUIZGEN_LOG_HTTP_4XX")),
    api_url=(os.getenv("QUIZGEN_API_URL") or DEFAULT_API_URL).strip(),
    api_key=_optional_str(os.getenv("QUIZGEN_API_KEY")),
    model=(os.getenv("QUIZGEN_MODEL") or DEFAULT_MODEL).strip(),
    base_timeout=base_timeout,
    per_item_timeout=per_item_timeout,
    max_timeout=max_timeout,
    retry_timeout_multiplier=_ratio("QUIZGEN_RETRY_TIMEOUT_MULTIPLIER", "0.75"),
    max_retries=_non_negative_int("QUIZGEN_MAX_RETRIES", "3"),
    retry_base_delay=retry_base_delay,
    retry_max_delay=retry_max_delay,
    slow_response_ratio=_ratio("QUIZGEN_SLOW_RESPONSE_RATIO", "0.8"),
    default_sampling=default_sampling,
    retry_sampling=retry_sampling,
    min_overall_score=_ratio("QUIZGEN_MIN_OVERALL_SCORE", "0.6"),
    max_regeneration_count=_non_negative_int("QUIZGEN_MAX_REGENERATION_COUNT", "10"),
    min_item_count=min_item_count,
    max_item_count=max_item_count,
    default_item_count=default_item_count,
    default_difficulty=default_difficulty,
    task_sweep_interval=_positive_float("QUIZGEN_TASK_SWEEP_INTERVAL_SECONDS", "300"),
    task_retention=_positive_float("QUIZGEN_TASK_RETENTION_SECONDS", "300"),
    monitor_thresholds=monitor_thresholds,
    parse_cache_ttl=_positive_float("QUIZGEN_PARSE_CACHE_TTL_SECONDS", "600"),
  )
