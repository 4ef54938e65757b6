import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main() -> None:
  """Launch the service under uvicorn."""
  host = os.getenv("QUIZGEN_HOST", "0.0.0.0")
  port = os.getenv("QUIZGEN_PORT", "8002")
  logger.info("Starting quiz generation service on %s:%s", host, port)
  # Replace the current process so uvicorn receives signals directly.
  os.execvp("uvicorn", ["uvicorn", "quizgen.main:app", "--host", host, "--port", port, "--no-server-header"])


if __name__ == "__main__":
  main()
