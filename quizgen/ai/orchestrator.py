"""Sequence parsing, prompting, generation, repair and validation for one quiz job."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import msgspec
from msgspec import structs

from quizgen.ai.errors import ParseError, QuizGenerationError, RequestError, ValidationBelowThreshold
from quizgen.ai.json_parser import parse_items
from quizgen.ai.parameters import ParseCache
from quizgen.ai.prompt_builder import build_prompt, build_regeneration_prompt
from quizgen.ai.providers.base import TextModel
from quizgen.ai.providers.policy import RetryPolicy, scale_timeout
from quizgen.ai.rules import map_parameters_to_rules
from quizgen.ai.validator import ensure_quality, prefer, validate_all
from quizgen.config import Settings
from quizgen.jobs import progress
from quizgen.jobs.models import GenerationJob
from quizgen.jobs.progress import JobProgressTracker
from quizgen.jobs.store import TaskStore
from quizgen.schema.parameters import ParsedParameters
from quizgen.schema.quiz import GeneratedItem, ValidationReport, normalize_items
from quizgen.storage.items_repo import ItemStore

logger = logging.getLogger(__name__)

Attempt = tuple[list[GeneratedItem], ValidationReport]


@dataclass(frozen=True)
class OrchestrationResult:
  """Final items and the report they were accepted with."""

  items: list[GeneratedItem]
  report: ValidationReport
  prompt: str


class QuizOrchestrator:
  """Runs the generation pipeline for jobs held in a task store."""

  def __init__(self, model: TextModel, store: TaskStore, item_store: ItemStore, settings: Settings, *, parse_cache: ParseCache | None = None) -> None:
    self._model = model
    self._store = store
    self._item_store = item_store
    self._settings = settings
    self._parse_cache = parse_cache or ParseCache(ttl_seconds=settings.parse_cache_ttl)

  def retry_policy(self, count: int) -> RetryPolicy:
    """Build the primary retry policy with a timeout scaled to the item count."""
    settings = self._settings
    timeout = scale_timeout(count, base=settings.base_timeout, per_item=settings.per_item_timeout, ceiling=settings.max_timeout)
    return RetryPolicy(
      max_retries=settings.max_retries,
      base_delay=settings.retry_base_delay,
      max_delay=settings.retry_max_delay,
      timeout=timeout,
      slow_response_ratio=settings.slow_response_ratio,
    )

  async def run(self, job_id: str) -> None:
    """Execute a job end to end; the job finishes either completed with a result or failed."""
    job = self._store.get(job_id)
    tracker = JobProgressTracker(job_id, self._store)
    try:
      outcome = await self.generate(job, tracker)
      tracker.mark(progress.PERSISTING)
      saved = await self._item_store.store(outcome.items, job=job)
      self._store.complete(job_id, self._build_result(job, saved, outcome.report), message=f"Generated {len(saved)} quiz item(s).")
    except RequestError as exc:
      self._store.fail(job_id, exc.describe())
    except QuizGenerationError as exc:
      self._store.fail(job_id, str(exc))
    except Exception:
      # Background jobs have no caller to propagate to; record the failure for pollers.
      logger.exception("Unexpected failure while generating job %s", job_id)
      self._store.fail(job_id, "Internal error during quiz generation.")

  async def generate(self, job: GenerationJob, tracker: JobProgressTracker) -> OrchestrationResult:
    request = job.request
    tracker.mark(progress.PARSED)
    parsed = self._parse_cache.parse(request.learning_goals, request.knowledge_points, request.difficulty)
    rules = map_parameters_to_rules(parsed)
    prompt = build_prompt(request.topic, parsed.difficulty, request.count, parsed, rules)
    tracker.mark(progress.PROMPT_READY)

    policy = self.retry_policy(request.count)
    tracker.mark(progress.REQUEST_ISSUED)
    response = await self._model.generate(prompt, sampling=self._settings.default_sampling, policy=policy)
    items = parse_items(response.content, parsed.difficulty)
    tracker.mark(progress.RESPONSE_PARSED, f"Parsed {len(items)} item(s) from the model response.")

    attempt = validate_all(items, parsed)
    tracker.mark(progress.VALIDATED, f"Validation score {attempt[1].overall_score:.2f}.")
    try:
      ensure_quality(attempt[1], request.count, min_overall_score=self._settings.min_overall_score, max_regeneration_count=self._settings.max_regeneration_count)
    except ValidationBelowThreshold as signal:
      logger.info("Job %s %s Regenerating once.", job.job_id, signal)
      tracker.mark(progress.REGENERATING)
      attempt = await self._regenerate(job, prompt, parsed, policy, attempt)
      tracker.mark(progress.REVALIDATED, f"Validation score {attempt[1].overall_score:.2f} after regeneration.")

    final_items, report = attempt
    if not final_items:
      raise ParseError("The model returned no quiz items.")
    if not report.passed:
      logger.warning("Job %s accepted items below quality bar overall=%.2f", job.job_id, report.overall_score)
    return OrchestrationResult(items=normalize_items(final_items), report=report, prompt=prompt)

  async def _regenerate(self, job: GenerationJob, prompt: str, parsed: ParsedParameters, policy: RetryPolicy, first: Attempt) -> Attempt:
    """Issue the single regeneration call and keep the better of the two attempts."""
    amended = build_regeneration_prompt(prompt, first[1], parsed, job.request.count)
    reduced = policy.reduced(self._settings.retry_timeout_multiplier)
    try:
      response = await self._model.generate(amended, sampling=self._settings.retry_sampling, policy=reduced)
      items = parse_items(response.content, parsed.difficulty)
    except (RequestError, ParseError) as exc:
      logger.warning("Regeneration for job %s failed; keeping first attempt: %s", job.job_id, exc)
      return first
    second_items, second_report = validate_all(items, parsed)
    second = (second_items, structs.replace(second_report, regenerated=True))
    chosen = prefer(first, second)
    logger.info("Job %s regeneration scored %.2f vs %.2f; keeping %s", job.job_id, second_report.overall_score, first[1].overall_score, "regenerated" if chosen is second else "original")
    return chosen

  def _build_result(self, job: GenerationJob, saved: list[dict[str, Any]], report: ValidationReport) -> dict[str, Any]:
    return {
      "topic": job.request.topic,
      "subject": job.request.subject,
      "difficulty": job.request.difficulty,
      "count": len(saved),
      "items": saved,
      "validation": msgspec.to_builtins(report),
    }
