from __future__ import annotations

import pytest

from quizgen.ai.parameters import parse_all_parameters
from quizgen.ai.prompt_builder import build_prompt, build_regeneration_prompt, unmet_constraints
from quizgen.ai.rules import DIFFICULTY_PROFILES, map_parameters_to_rules
from quizgen.ai.validator import validate_all
from quizgen.schema.quiz import GeneratedItem


@pytest.fixture
def parsed():
  return parse_all_parameters("理解二次函数的概念，能够应用求根公式解方程，会编写代码", "求根公式,函数应用,不包括虚数", "中等")


def test_rules_weight_domains_above_points(parsed) -> None:
  rules = map_parameters_to_rules(parsed)
  assert rules.question_distribution["求根公式"].weight == pytest.approx(0.5)
  assert rules.question_distribution["函数应用"].weight == pytest.approx(0.75)
  assert all(allocation.min_count == 1 for allocation in rules.question_distribution.values())


def test_rules_focus_requirements_and_criteria(parsed) -> None:
  rules = map_parameters_to_rules(parsed)
  assert [focus.type for focus in rules.topic_focus] == ["concept", "application"]
  texts = [requirement.text for requirement in rules.content_requirements]
  assert "必须包含代码示例" in texts
  assert "明确排除以下内容：虚数" in texts
  assert rules.validation_criteria == ["题目难度必须符合中等级别要求"]
  assert rules.difficulty_profile == DIFFICULTY_PROFILES["中等"]


def test_unknown_difficulty_falls_back_to_medium_profile() -> None:
  rules = map_parameters_to_rules(parse_all_parameters(None, None, "地狱"))
  assert rules.difficulty_profile == DIFFICULTY_PROFILES["中等"]
  assert rules.topic_focus == []
  assert rules.question_distribution == {}


def test_prompt_sections_follow_fixed_order(parsed) -> None:
  prompt = build_prompt("二次函数", "中等", 5, parsed, map_parameters_to_rules(parsed))
  assert prompt.startswith('请为"二次函数"主题生成5道中等难度的选择题。')
  markers = ["【学习目标】", "【知识点范围】", "【题目重点】", "【知识点分布】", "【内容要求】", "【验证标准】", "【格式要求】", "【输出格式】"]
  positions = [prompt.index(marker) for marker in markers]
  assert positions == sorted(positions)
  assert "明确排除的内容：\n1. 虚数" in prompt


def test_prompt_is_deterministic(parsed) -> None:
  rules = map_parameters_to_rules(parsed)
  assert build_prompt("二次函数", "中等", 5, parsed, rules) == build_prompt("二次函数", "中等", 5, parsed, map_parameters_to_rules(parsed))


def test_prompt_without_constraints_skips_optional_sections() -> None:
  parsed = parse_all_parameters(None, None)
  prompt = build_prompt("光合作用", "简单", 3, parsed, map_parameters_to_rules(parsed))
  assert "【学习目标】" not in prompt
  assert "【知识点范围】" not in prompt
  assert "【输出格式】" in prompt


def test_regeneration_prompt_lists_unmet_constraints() -> None:
  parsed = parse_all_parameters(None, "求根公式")
  items = [GeneratedItem(question="简单计算 1+1", options=["A. 2", "B. 3"], correct_answer="A", explanation="简单加法")]
  _, report = validate_all(items, parsed)
  constraints = unmet_constraints(report, parsed)
  assert "- 题目必须明确涉及以下知识点：求根公式" in constraints
  assert any("中等级别" in line for line in constraints)

  prompt = build_regeneration_prompt("BASE", report, parsed, 4)
  assert prompt.startswith("BASE\n\n【改进要求】")
  assert "重新生成全部4道题目" in prompt
  assert "{{" not in prompt
