"""Extraction and lenient repair of JSON item arrays from LLM output."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from quizgen.ai.errors import ParseError
from quizgen.schema.quiz import GeneratedItem, item_from_mapping

logger = logging.getLogger(__name__)

_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_FENCE_RE = re.compile(r"```[A-Za-z]*[ \t]*\r?\n?([\s\S]*?)\r?\n?```")
_GREEDY_ARRAY_RE = re.compile(r"\[\s*\{[\s\S]*\}\s*\]")
_OBJECT_RE = re.compile(r"\{\s*\"[\s\S]*\}")
_STRING_LITERAL_RE = re.compile(r'"((?:[^"\\]|\\.)*)"', re.DOTALL)
_BACKSLASH_RE = re.compile(r'\\(["\\/bfnrt]|u[0-9a-fA-F]{4})|\\')

_VALID_ESCAPES = frozenset('"\\/bfnrt')
_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t", "\b": "\\b", "\f": "\\f"}
_WRAPPER_KEYS = ("cards", "data", "items", "results")
_SNIPPET_RADIUS = 40


@dataclass(frozen=True)
class RepairResult:
  """Outcome of a single repair strategy."""

  strategy: str
  text: str
  value: Any = None
  error: json.JSONDecodeError | None = None

  @property
  def ok(self) -> bool:
    return self.error is None


def _trial(strategy: str, text: str) -> RepairResult:
  try:
    return RepairResult(strategy=strategy, text=text, value=json.loads(text))
  except json.JSONDecodeError as exc:
    return RepairResult(strategy=strategy, text=text, error=exc)


def _scan_balanced_array(raw: str, start: int) -> int | None:
  """Return the index of the bracket that closes the array opened at `start`."""
  depth = 0
  in_string = False
  escape = False

  for index in range(start, len(raw)):
    char = raw[index]
    if in_string:
      if escape:
        escape = False
      elif char == "\\":
        escape = True
      elif char == '"':
        in_string = False
      continue

    if char == '"':
      in_string = True
    elif char in "{[":
      depth += 1
    elif char in "}]":
      depth -= 1
      if depth == 0:
        return index

  return None


def _looks_like_json_array(block: str) -> bool:
  inner = block[1:].lstrip()
  return inner[:1] in {"{", "[", '"', "]"} or inner[:1].isdigit()


def extract_json(text: str) -> str:
  """Locate the most plausible JSON payload in free-form model text."""
  # Walk each '[' so bracketed prose like "[note]" does not hide the real payload.
  start = text.find("[")
  while start != -1:
    end = _scan_balanced_array(text, start)
    if end is None:
      break
    block = text[start : end + 1]
    if _looks_like_json_array(block):
      return block
    start = text.find("[", start + 1)

  for pattern in (_GREEDY_ARRAY_RE, _OBJECT_RE):
    match = pattern.search(text)
    if match:
      return match.group(0)

  return text.strip()


def clean_text(raw: str) -> str:
  """Strip BOM, Markdown fences and surrounding prose, then drop trailing commas."""
  text = raw.lstrip("\ufeff").strip()
  fenced = _FENCE_RE.search(text)
  if fenced:
    text = fenced.group(1).strip()
  elif text.startswith("```"):
    # Truncated output can leave an opening fence without its partner.
    text = text.split("\n", 1)[1] if "\n" in text else ""

  starts = [index for index in (text.find("["), text.find("{")) if index != -1]
  if starts:
    text = text[min(starts) :]
  end = max(text.rfind("]"), text.rfind("}"))
  if end != -1:
    text = text[: end + 1]
  return _TRAILING_COMMA_RE.sub(r"\1", text)


def _next_significant(raw: str, index: int) -> str | None:
  while index < len(raw) and raw[index].isspace():
    index += 1
  return raw[index] if index < len(raw) else None


def repair_string_state(raw: str) -> str:
  """Character-stream repair of string literals.

  Inside strings, bare control characters are escaped and backslashes that do not start a valid
  JSON escape are doubled, so LaTeX such as ``\\sum`` survives. A string still open at a line break
  whose next non-blank character is a quote or a closing bracket is closed there, adding the
  missing comma before a following key.
  """
  output: list[str] = []
  in_string = False
  index = 0
  length = len(raw)

  while index < length:
    char = raw[index]
    if not in_string:
      output.append(char)
      if char == '"':
        in_string = True
      index += 1
      continue

    if char == "\\":
      following = raw[index + 1] if index + 1 < length else ""
      if following in _VALID_ESCAPES:
        output.append(char + following)
        index += 2
        continue
      if following == "u" and re.fullmatch(r"[0-9a-fA-F]{4}", raw[index + 2 : index + 6]):
        output.append(raw[index : index + 6])
        index += 6
        continue
      output.append("\\\\")
      index += 1
      continue

    if char == '"':
      output.append(char)
      in_string = False
      index += 1
      continue

    if char in "\r\n":
      upcoming = _next_significant(raw, index + 1)
      if upcoming in {'"', "}", "]"}:
        output.append('",' if upcoming == '"' else '"')
        in_string = False
        output.append(char)
        index += 1
        continue

    if char in _CONTROL_ESCAPES:
      output.append(_CONTROL_ESCAPES[char])
    elif ord(char) < 0x20:
      output.append(f"\\u{ord(char):04x}")
    else:
      output.append(char)
    index += 1

  if in_string:
    output.append('"')
  return "".join(output)


def _repair_literal(match: re.Match[str]) -> str:
  content = _BACKSLASH_RE.sub(lambda escape: escape.group(0) if escape.group(1) else "\\\\", match.group(1))
  for control, replacement in _CONTROL_ESCAPES.items():
    content = content.replace(control, replacement)
  return f'"{content}"'


def repair_string_literals(raw: str) -> str:
  """Regex repair applied to each string literal independently."""
  return _STRING_LITERAL_RE.sub(_repair_literal, raw)


Strategy = Callable[[str], RepairResult]


def _direct(text: str) -> RepairResult:
  return _trial("direct", text)


def _cleaned(text: str) -> RepairResult:
  return _trial("cleaned", clean_text(text))


def _char_stream(text: str) -> RepairResult:
  return _trial("char_stream", repair_string_state(clean_text(text)))


def _literal_regex(text: str) -> RepairResult:
  return _trial("literal_regex", repair_string_literals(clean_text(text)))


REPAIR_STRATEGIES: tuple[Strategy, ...] = (_direct, _cleaned, _char_stream, _literal_regex)


def _snippet(error: json.JSONDecodeError) -> str:
  start = max(error.pos - _SNIPPET_RADIUS, 0)
  return error.doc[start : error.pos + _SNIPPET_RADIUS]


def parse_with_repair(candidate: str, strategies: tuple[Strategy, ...] = REPAIR_STRATEGIES) -> Any:
  """Run the repair strategies in order and return the first successful parse."""
  last: RepairResult | None = None
  for strategy in strategies:
    result = strategy(candidate)
    if result.ok:
      if result.strategy != "direct":
        logger.info("Recovered JSON with strategy=%s", result.strategy)
      return result.value
    last = result

  if last is None or last.error is None:
    raise ParseError("No repair strategies were configured.")
  snippet = _snippet(last.error)
  raise ParseError(f"Unable to parse model output as JSON after {len(strategies)} strategies: {last.error.msg} near {snippet!r}", position=last.error.pos, snippet=snippet)


def unwrap_items(value: Any) -> list[Any]:
  """Normalize a parsed payload into a list of item candidates."""
  if isinstance(value, list):
    return value
  if isinstance(value, dict):
    for key in _WRAPPER_KEYS:
      wrapped = value.get(key)
      if isinstance(wrapped, list):
        return wrapped
    return [value]
  return []


def parse_items(text: str, difficulty: str) -> list[GeneratedItem]:
  """Extract, repair and convert model output into generated items."""
  value = parse_with_repair(extract_json(text))
  items: list[GeneratedItem] = []
  for index, raw in enumerate(unwrap_items(value)):
    if not isinstance(raw, dict):
      logger.warning("Skipping non-object item at index %d (%s)", index, type(raw).__name__)
      continue
    items.append(item_from_mapping(raw, difficulty))
  return items
