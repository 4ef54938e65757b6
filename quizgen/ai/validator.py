"""Multi-axis content validation for generated quiz items."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from msgspec import structs

from quizgen.ai.errors import ValidationBelowThreshold
from quizgen.schema.parameters import KnowledgePoints, LearningGoals, ParsedParameters
from quizgen.schema.quiz import AxisResult, GeneratedItem, ValidationAnnotation, ValidationReport, resolve_answer_index

logger = logging.getLogger(__name__)

COVERAGE_PASS = 0.8
DIFFICULTY_PASS = 0.7
STRUCTURE_PASS = 0.9
RELEVANCE_PASS = 0.8

_TOKEN_SPLIT_RE = re.compile(r"[，,。\s]")


@dataclass(frozen=True)
class DifficultyKeywords:
  required: tuple[str, ...]
  avoid: tuple[str, ...]


DIFFICULTY_KEYWORDS: dict[str, DifficultyKeywords] = {
  "简单": DifficultyKeywords(required=("基础", "简单", "基本", "入门"), avoid=("复杂", "高级", "深入", "综合")),
  "中等": DifficultyKeywords(required=("应用", "理解", "分析"), avoid=("基础", "简单", "复杂", "高级")),
  "困难": DifficultyKeywords(required=("复杂", "高级", "深入", "综合", "分析", "评估"), avoid=("基础", "简单", "入门")),
}


def _item_text(item: GeneratedItem) -> str:
  return f"{item.question} {item.explanation}".lower()


def _rate(matched: int, total: int) -> float:
  return matched / total if total else 0.0


def _percent(score: float) -> str:
  return f"{score * 100:.1f}%"


def validate_knowledge_coverage(items: list[GeneratedItem], knowledge: KnowledgePoints) -> AxisResult:
  """Fraction of required points and domains that appear in at least one item."""
  required = [*knowledge.points, *knowledge.domains]
  if not required:
    if not items:
      return AxisResult(valid=False, score=0.0, message="没有可验证的题目")
    return AxisResult(valid=True, score=1.0, message="未指定知识点范围")

  details = []
  for point in required:
    needle = point.lower()
    hits = [index for index, item in enumerate(items) if needle in _item_text(item) or (item.related_knowledge_point and needle in item.related_knowledge_point.lower())]
    details.append({"point": point, "covered": bool(hits), "itemIndexes": hits})

  covered = sum(1 for detail in details if detail["covered"])
  score = _rate(covered, len(required))
  valid = score >= COVERAGE_PASS
  missing = [detail["point"] for detail in details if not detail["covered"]]
  message = f"知识点覆盖率：{_percent(score)}" if valid else f"知识点覆盖率不足：{_percent(score)}，缺失：{'、'.join(missing)}"
  return AxisResult(valid=valid, score=score, message=message, details=details)


def validate_difficulty_match(items: list[GeneratedItem], difficulty: str) -> AxisResult:
  """Fraction of items that use the level's vocabulary and avoid the opposite level's."""
  keywords = DIFFICULTY_KEYWORDS.get(difficulty, DIFFICULTY_KEYWORDS["中等"])
  details = []
  for index, item in enumerate(items):
    text = _item_text(item)
    has_required = any(keyword in text for keyword in keywords.required)
    has_avoid = any(keyword in text for keyword in keywords.avoid)
    details.append({"itemIndex": index, "matches": has_required and not has_avoid, "hasRequired": has_required, "hasAvoid": has_avoid})

  score = _rate(sum(1 for detail in details if detail["matches"]), len(items))
  valid = score >= DIFFICULTY_PASS
  message = f"难度匹配度：{_percent(score)}" if valid else f"难度匹配度不足：{_percent(score)}"
  return AxisResult(valid=valid, score=score, message=message, details=details)


def _structure_issues(item: GeneratedItem) -> list[str]:
  issues: list[str] = []
  if not item.question.strip():
    issues.append("缺少题目")
  if len(item.options) < 2:
    issues.append("缺少选项")
  elif not all(option.strip() for option in item.options):
    issues.append("选项格式错误")
  if item.correct_answer == "":
    issues.append("缺少正确答案")
  elif resolve_answer_index(item) is None:
    issues.append("正确答案不在选项中")
  if not item.explanation.strip():
    issues.append("缺少解析")
  return issues


def validate_structural_compliance(items: list[GeneratedItem]) -> AxisResult:
  """Fraction of items with a question, two or more options, a resolvable answer and an explanation."""
  details = []
  for index, item in enumerate(items):
    issues = _structure_issues(item)
    details.append({"itemIndex": index, "compliant": not issues, "issues": issues})

  score = _rate(sum(1 for detail in details if detail["compliant"]), len(items))
  valid = score >= STRUCTURE_PASS
  message = f"题目类型合规性：{_percent(score)}" if valid else f"题目类型合规性不足：{_percent(score)}"
  return AxisResult(valid=valid, score=score, message=message, details=details)


def _tokens(phrases: tuple[str, ...]) -> set[str]:
  return {token.lower() for phrase in phrases for token in _TOKEN_SPLIT_RE.split(phrase) if len(token) > 1}


def validate_goal_relevance(items: list[GeneratedItem], goals: LearningGoals) -> AxisResult:
  """Fraction of items sharing a token with a goal phrase or carrying a relatedGoal tag."""
  if not goals.has_goals:
    if not items:
      return AxisResult(valid=False, score=0.0, message="没有可验证的题目")
    return AxisResult(valid=True, score=1.0, message="未指定学习目标")

  tokens = _tokens(goals.goals + goals.capabilities + goals.skills)
  details = []
  for index, item in enumerate(items):
    text = _item_text(item)
    matched = sorted(token for token in tokens if token in text)
    tagged = bool(item.related_goal and item.related_goal.strip())
    details.append({"itemIndex": index, "relevant": bool(matched) or tagged, "matchedTokens": matched, "relatedGoal": item.related_goal})

  score = _rate(sum(1 for detail in details if detail["relevant"]), len(items))
  valid = score >= RELEVANCE_PASS
  message = f"学习目标相关性：{_percent(score)}" if valid else f"学习目标相关性不足：{_percent(score)}"
  return AxisResult(valid=valid, score=score, message=message, details=details)


def _annotate(items: list[GeneratedItem], report: ValidationReport) -> list[GeneratedItem]:
  covered_by_item: dict[int, list[str]] = {}
  for detail in report.knowledge_coverage.details:
    for index in detail.get("itemIndexes", []):
      covered_by_item.setdefault(index, []).append(detail["point"])
  difficulty = {detail["itemIndex"]: detail["matches"] for detail in report.difficulty_match.details}
  structure = {detail["itemIndex"]: detail["issues"] for detail in report.structural_compliance.details}
  relevance = {detail["itemIndex"]: detail["relevant"] for detail in report.goal_relevance.details}

  annotated: list[GeneratedItem] = []
  for index, item in enumerate(items):
    issues = structure.get(index, [])
    annotation = ValidationAnnotation(
      structurally_valid=not issues,
      matches_difficulty=difficulty.get(index, True),
      relevant_to_goals=relevance.get(index, True),
      covered_points=covered_by_item.get(index, []),
      issues=list(issues),
    )
    annotated.append(structs.replace(item, validation=annotation))
  return annotated


def validate_all(items: list[GeneratedItem], parsed: ParsedParameters) -> tuple[list[GeneratedItem], ValidationReport]:
  """Score items on all four axes and return them annotated alongside the report.

  An empty item list scores 0.0 on every axis so the overall score is always defined.
  """
  coverage = validate_knowledge_coverage(items, parsed.knowledge_points)
  difficulty = validate_difficulty_match(items, parsed.difficulty)
  structure = validate_structural_compliance(items)
  relevance = validate_goal_relevance(items, parsed.learning_goals)
  axes = (coverage, difficulty, structure, relevance)
  report = ValidationReport(
    knowledge_coverage=coverage,
    difficulty_match=difficulty,
    structural_compliance=structure,
    goal_relevance=relevance,
    overall_score=sum(axis.score for axis in axes) / len(axes),
    passed=all(axis.valid for axis in axes),
  )
  logger.debug("Validation overall=%.2f passed=%s items=%d", report.overall_score, report.passed, len(items))
  return _annotate(items, report), report


def ensure_quality(report: ValidationReport, count: int, *, min_overall_score: float, max_regeneration_count: int) -> None:
  """Raise ValidationBelowThreshold when a low score warrants the single regeneration."""
  if report.overall_score < min_overall_score and count <= max_regeneration_count:
    raise ValidationBelowThreshold(report.overall_score, min_overall_score)


def prefer(first: tuple[list[GeneratedItem], ValidationReport], second: tuple[list[GeneratedItem], ValidationReport]) -> tuple[list[GeneratedItem], ValidationReport]:
  """Keep whichever attempt scored higher, favouring the first on ties."""
  return second if second[1].overall_score > first[1].overall_score else first
