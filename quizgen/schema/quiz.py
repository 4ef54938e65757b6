"""msgspec structs for generated quiz items and their validation results."""

from __future__ import annotations

import re
from typing import Annotated, Any

import msgspec
from msgspec import structs


class ValidationAnnotation(msgspec.Struct, rename="camel", omit_defaults=True):
  """Per-item outcome of content validation."""

  structurally_valid: bool = True
  matches_difficulty: bool = True
  relevant_to_goals: bool = True
  covered_points: list[str] = msgspec.field(default_factory=list)
  issues: list[str] = msgspec.field(default_factory=list)


class GeneratedItem(msgspec.Struct, rename="camel", omit_defaults=True):
  """A single multiple-choice item returned by the model."""

  question: str = ""
  options: list[str] = msgspec.field(default_factory=list)
  correct_answer: int | str = ""
  explanation: str = ""
  difficulty: str = ""
  related_goal: str | None = None
  related_knowledge_point: str | None = None
  validation: ValidationAnnotation | None = None


class AxisResult(msgspec.Struct, rename="camel"):
  """Score for a single validation axis."""

  valid: bool
  score: Annotated[float, msgspec.Meta(ge=0.0, le=1.0)]
  message: str
  details: list[dict[str, Any]] = msgspec.field(default_factory=list)


class ValidationReport(msgspec.Struct, rename="camel"):
  """Scores for all validation axes plus the overall outcome."""

  knowledge_coverage: AxisResult
  difficulty_match: AxisResult
  structural_compliance: AxisResult
  goal_relevance: AxisResult
  overall_score: float
  passed: bool
  regenerated: bool = False

  def axes(self) -> dict[str, AxisResult]:
    return {
      "knowledgeCoverage": self.knowledge_coverage,
      "difficultyMatch": self.difficulty_match,
      "structuralCompliance": self.structural_compliance,
      "goalRelevance": self.goal_relevance,
    }


def _coerce_options(raw: Any) -> list[str]:
  if isinstance(raw, dict):
    return [f"{key}. {value}" for key, value in raw.items()]
  if isinstance(raw, list):
    return [str(option) for option in raw if option is not None]
  return []


def _coerce_answer(raw: Any) -> int | str:
  if isinstance(raw, bool) or raw is None:
    return ""
  if isinstance(raw, int):
    return raw
  return str(raw).strip()


def item_from_mapping(raw: dict[str, Any], difficulty: str) -> GeneratedItem:
  """Build a GeneratedItem from a loosely shaped model object, keeping gaps for validation to flag."""
  payload = {
    "question": str(raw.get("question") or "").strip(),
    "options": _coerce_options(raw.get("options")),
    "correctAnswer": _coerce_answer(raw.get("correctAnswer", raw.get("answer"))),
    "explanation": str(raw.get("explanation") or "").strip(),
    "difficulty": str(raw.get("difficulty") or difficulty),
  }
  for key in ("relatedGoal", "relatedKnowledgePoint"):
    value = raw.get(key)
    if isinstance(value, str) and value.strip():
      payload[key] = value.strip()
  return msgspec.convert(payload, GeneratedItem)


_LETTER_PREFIX_RE = re.compile(r"^\s*([A-Za-z])\s*[.．、:：)）]")


def option_letter(option: str) -> str | None:
  """Return the leading option letter of strings like "A. text"."""
  match = _LETTER_PREFIX_RE.match(option)
  return match.group(1).upper() if match else None


def resolve_answer_index(item: GeneratedItem) -> int | None:
  """Locate the correct answer within the options by text, index or letter.

  Exact option text wins over every other reading, so a numeric answer such
  as "1" matches the option "1" before it is treated as a 0-based index.
  """
  options = item.options
  answer = item.correct_answer
  if isinstance(answer, int):
    return answer if 0 <= answer < len(options) else None
  answer = answer.strip()
  if not answer:
    return None
  for index, option in enumerate(options):
    if option.strip() == answer:
      return index
  if answer.isdigit():
    index = int(answer)
    return index if 0 <= index < len(options) else None
  if len(answer) == 1 and answer.isascii() and answer.isalpha():
    letter = answer.upper()
    for index, option in enumerate(options):
      if option_letter(option) == letter or option.strip().upper() == letter:
        return index
    index = ord(letter) - ord("A")
    return index if 0 <= index < len(options) else None
  for index, option in enumerate(options):
    if option.strip() and (answer in option or option.strip() in answer):
      return index
  return None


def normalize_items(items: list[GeneratedItem]) -> list[GeneratedItem]:
  """Replace index and letter answers with the full option text."""
  normalized: list[GeneratedItem] = []
  for item in items:
    index = resolve_answer_index(item)
    if index is not None and item.correct_answer != item.options[index]:
      item = structs.replace(item, correct_answer=item.options[index])
    normalized.append(item)
  return normalized


def items_to_builtins(items: list[GeneratedItem]) -> list[dict[str, Any]]:
  """Return JSON-ready dicts with camelCase keys."""
  return msgspec.to_builtins(items)
