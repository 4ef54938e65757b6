"""Prompt assembly for quiz generation and validation-driven regeneration."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from quizgen.schema.parameters import GenerationRules, ParsedParameters
from quizgen.schema.quiz import ValidationReport

_GOAL_RELEVANCE_NOTE = "重要：每道题目必须直接评估上述学习目标的达成情况。题目内容必须与学习目标高度相关，不能生成无关的题目。"
_SCOPE_NOTE = "重要：每道题目必须明确涉及上述知识点之一，不能生成超出范围或无关的题目。"


@lru_cache(maxsize=8)
def _load_prompt(name: str) -> str:
  try:
    path = Path(__file__).parent / "prompts" / name
    return path.read_text(encoding="utf-8").strip()
  except (FileNotFoundError, PermissionError, UnicodeDecodeError) as exc:
    raise RuntimeError(f"Failed to load prompt '{name}': {exc}") from exc


def _replace_placeholders(template: str, values: dict[str, str]) -> str:
  """Substitute {{PLACEHOLDER}} markers with concrete values."""
  rendered = template
  for key, value in values.items():
    rendered = rendered.replace(f"{{{{{key}}}}}", value)
  return rendered


def _numbered(values: tuple[str, ...] | list[str]) -> list[str]:
  return [f"{index}. {value}" for index, value in enumerate(values, start=1)]


def rules_to_sections(rules: GenerationRules) -> list[str]:
  """Render rule-derived requirements as prompt sections."""
  sections: list[str] = []
  if rules.topic_focus:
    focus = "、".join(entry.description for entry in rules.topic_focus)
    sections.append(f"【题目重点】\n必须重点考察：{focus}")

  if rules.question_distribution:
    lines = [f'- "{point}"：{allocation.description}' for point, allocation in rules.question_distribution.items()]
    sections.append("【知识点分布】\n题目必须覆盖以下知识点，确保每个知识点至少有一道题：\n" + "\n".join(lines))

  required = [f"- [必须] {entry.text}" for entry in rules.content_requirements if entry.priority == "high"]
  suggested = [f"- [建议] {entry.text}" for entry in rules.content_requirements if entry.priority == "medium"]
  if required or suggested:
    sections.append("【内容要求】\n" + "\n".join(required + suggested))

  if rules.validation_criteria:
    criteria = "\n".join(f"- {criterion}" for criterion in rules.validation_criteria)
    sections.append(f"【验证标准】\n生成的内容必须满足以下标准：\n{criteria}")
  return sections


def build_prompt(topic: str, difficulty: str, count: int, parsed: ParsedParameters, rules: GenerationRules) -> str:
  """Compose the generation prompt; identical inputs always produce identical text."""
  blocks: list[str] = [f'请为"{topic}"主题生成{count}道{difficulty}难度的选择题。']

  goals = parsed.learning_goals
  if goals.has_goals:
    blocks.append("\n".join(["【学习目标】", *_numbered(goals.goals), "", _GOAL_RELEVANCE_NOTE]))

  knowledge = parsed.knowledge_points
  if knowledge.has_points:
    lines = ["【知识点范围】"]
    if knowledge.points:
      lines += ["必须包含的知识点：", *_numbered(knowledge.points)]
    if knowledge.domains:
      lines += ["", "必须包含的知识域：", *_numbered(knowledge.domains)]
    if knowledge.boundaries:
      lines += ["", "明确排除的内容：", *_numbered(knowledge.boundaries)]
    lines += ["", _SCOPE_NOTE]
    blocks.append("\n".join(lines))

  blocks.extend(rules_to_sections(rules))
  blocks.append(_load_prompt("output_format.md"))
  return "\n\n".join(blocks)


def unmet_constraints(report: ValidationReport, parsed: ParsedParameters) -> list[str]:
  """Describe each failing validation axis as an instruction for the next attempt."""
  lines: list[str] = []
  coverage = report.knowledge_coverage
  if not coverage.valid:
    missing = [detail["point"] for detail in coverage.details if not detail.get("covered")]
    if missing:
      lines.append(f"- 题目必须明确涉及以下知识点：{'、'.join(missing)}")
    else:
      lines.append("- 题目必须覆盖全部指定的知识点")
  if not report.difficulty_match.valid:
    lines.append(f"- 题目难度必须符合{parsed.difficulty}级别要求，措辞体现相应的难度特征")
  if not report.structural_compliance.valid:
    lines.append("- 每道题目必须包含题干、至少两个选项、能在选项中找到的正确答案以及完整解析")
  if not report.goal_relevance.valid:
    lines.append("- 每道题目必须与学习目标直接相关，并在 relatedGoal 字段中注明关联的学习目标")
  return lines


def build_regeneration_prompt(base_prompt: str, report: ValidationReport, parsed: ParsedParameters, count: int) -> str:
  """Append the unmet constraints from a failed validation to the original prompt."""
  constraints = unmet_constraints(report, parsed) or ["- 提高题目整体质量"]
  amendment = _replace_placeholders(
    _load_prompt("regeneration.md"),
    {"OVERALL_SCORE": f"{report.overall_score:.2f}", "COUNT": str(count), "UNMET_CONSTRAINTS": "\n".join(constraints)},
  )
  return f"{base_prompt}\n\n{amendment}"
