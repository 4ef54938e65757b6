import logging
import logging.handlers
import sys
import time
import traceback
from pathlib import Path
from types import TracebackType

from quizgen.config import Settings

LOG_LINE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"
DEFAULT_LOG_DIR = Path(__file__).resolve().parents[2] / "logs"
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi")

_LOG_FILE_PATH: Path | None = None
_LOGGING_INITIALIZED = False

ExcInfo = tuple[type[BaseException] | None, BaseException | None, TracebackType | None]


class TruncatedFormatter(logging.Formatter):
  """Console formatter that keeps the first line and the innermost frames of a traceback."""

  def __init__(self, fmt: str = LOG_LINE_FORMAT, datefmt: str = LOG_DATE_FORMAT, *, tail: int = 5) -> None:
    super().__init__(fmt, datefmt=datefmt)
    self.tail = tail

  def formatException(self, ei: ExcInfo) -> str:  # noqa: N802
    lines = traceback.format_exception(*ei)
    if len(lines) <= self.tail + 1:
      return "".join(lines)
    return "".join([lines[0], "    ...\n", *lines[-self.tail :]])


def _rotated_name(default_name: str) -> str:
  """Turn RotatingFileHandler's quizgen.log.1 into quizgen.log-1."""
  stem, _, suffix = default_name.rpartition(".")
  return f"{stem}-{suffix}" if stem and suffix.isdigit() else default_name


def _open_log_file(log_dir: Path) -> Path:
  try:
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"quizgen_{time.strftime('%Y%m%d_%H%M%S')}.log"
    # The file must exist before the first flush so startup can verify it.
    log_path.touch(exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Cannot prepare log file under {log_dir}: {exc}") from exc
  return log_path


def _build_handlers(settings: Settings, log_dir: Path | None = None) -> tuple[logging.Handler, logging.Handler, Path]:
  """Return the console handler, the rotating file handler and the file they write to."""
  log_path = _open_log_file(log_dir or DEFAULT_LOG_DIR)

  console = logging.StreamHandler(sys.stdout)
  console.setFormatter(TruncatedFormatter())

  rotating = logging.handlers.RotatingFileHandler(log_path, encoding="utf-8", maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count)
  rotating.namer = _rotated_name
  rotating.setFormatter(logging.Formatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  return console, rotating, log_path


def setup_logging(settings: Settings, log_dir: Path | None = None) -> Path:
  """Send root, server and library loggers through the shared handlers."""
  console, rotating, log_path = _build_handlers(settings, log_dir)
  handlers: list[logging.Handler] = [console, rotating]
  for name in SERVER_LOGGERS:
    server_logger = logging.getLogger(name)
    server_logger.handlers = list(handlers)
    server_logger.propagate = False

  logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO, handlers=handlers, force=True)
  # httpx logs every request at INFO.
  logging.getLogger("httpx").setLevel(logging.DEBUG if settings.debug else logging.WARNING)
  if not log_path.exists():
    raise RuntimeError(f"Log file disappeared during setup: {log_path}")
  return log_path


def initialize_logging(settings: Settings) -> None:
  """Configure logging on first call; later calls are no-ops."""
  global _LOG_FILE_PATH, _LOGGING_INITIALIZED
  if _LOGGING_INITIALIZED:
    return
  _LOG_FILE_PATH = setup_logging(settings)
  _LOGGING_INITIALIZED = True
  logger = logging.getLogger(__name__)
  logger.info("Logging to %s (environment=%s debug=%s)", _LOG_FILE_PATH, settings.environment, settings.debug)
  logger.info("Completion endpoint %s model=%s", settings.api_url, settings.model)
