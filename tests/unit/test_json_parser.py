"""Unit tests for JSON extraction and repair of model output."""

from __future__ import annotations

import json

import pytest

from quizgen.ai.errors import ParseError
from quizgen.ai.json_parser import clean_text, extract_json, parse_items, parse_with_repair, repair_string_state, unwrap_items


def test_extract_json_respects_brackets_inside_strings() -> None:
  text = 'Here you go: [{"a": "x]y"}] thanks'
  assert extract_json(text) == '[{"a": "x]y"}]'


def test_extract_json_skips_bracketed_prose() -> None:
  text = '[注意] 以下是结果：[{"question": "q"}]'
  assert extract_json(text) == '[{"question": "q"}]'


def test_valid_json_is_returned_unchanged() -> None:
  value = [{"question": "什么是\\n换行", "options": ["A", "B"], "nested": {"n": 1}}]
  assert parse_with_repair(json.dumps(value, ensure_ascii=False)) == value


def test_fenced_output_with_trailing_commas() -> None:
  text = '```json\n[\n  {"question": "q", "options": ["A", "B",],},\n]\n```'
  assert parse_with_repair(extract_json(text)) == [{"question": "q", "options": ["A", "B"]}]


def test_clean_text_strips_bom_and_prose() -> None:
  assert clean_text('\ufeff说明文字 {"a": 1,} 结束') == '{"a": 1}'


def test_latex_backslashes_survive_repair() -> None:
  raw = '[{"question": "求 \\sum_{i=1}^n i 的值", "explanation": "使用 \\alpha 表示"}]'
  value = parse_with_repair(extract_json(raw))
  assert value[0]["question"] == "求 \\sum_{i=1}^n i 的值"
  assert value[0]["explanation"] == "使用 \\alpha 表示"


def test_bare_control_characters_are_escaped() -> None:
  assert json.loads(repair_string_state('{"q": "line1\tline2"}')) == {"q": "line1\tline2"}


def test_unclosed_string_before_next_key_is_closed() -> None:
  raw = '[\n{"question": "什么是函数\n"options": ["A. 1", "B. 2"], "correctAnswer": "A"}\n]'
  value = parse_with_repair(extract_json(raw))
  assert value == [{"question": "什么是函数", "options": ["A. 1", "B. 2"], "correctAnswer": "A"}]


def test_string_left_open_at_end_is_closed() -> None:
  assert json.loads(repair_string_state('{"a": "b') + "}") == {"a": "b"}


def test_unwrap_items_handles_wrapper_keys() -> None:
  assert unwrap_items({"cards": [{"q": 1}]}) == [{"q": 1}]
  assert unwrap_items({"question": "single"}) == [{"question": "single"}]
  assert unwrap_items("nope") == []


def test_parse_items_converts_and_skips_non_objects() -> None:
  text = json.dumps({"items": [{"question": "q", "options": {"A": "一", "B": "二"}, "answer": "B", "explanation": "e"}, "stray"]}, ensure_ascii=False)
  items = parse_items(text, "中等")
  assert len(items) == 1
  assert items[0].options == ["A. 一", "B. 二"]
  assert items[0].correct_answer == "B"
  assert items[0].difficulty == "中等"


def test_unrecoverable_text_raises_parse_error() -> None:
  with pytest.raises(ParseError) as exc_info:
    parse_items("抱歉，我无法生成题目。", "中等")
  assert "Unable to parse" in str(exc_info.value)
  assert exc_info.value.position is not None
