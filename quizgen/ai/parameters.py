"""Parse free-text learning goals and knowledge constraints into structured parameters."""

from __future__ import annotations

import re
import threading
import time
from collections import OrderedDict
from typing import Callable, Iterable

from quizgen.config import get_settings
from quizgen.schema.parameters import Completeness, KnowledgePoints, LearningGoals, ParsedParameters

CAPABILITY_KEYWORDS: tuple[str, ...] = ("理解", "掌握", "应用", "分析", "评估", "创造", "记忆", "综合", "评价", "熟悉", "精通", "熟练", "了解", "认识", "识别")
SKILL_KEYWORDS: tuple[str, ...] = (
  "编程",
  "代码",
  "算法",
  "数据结构",
  "函数",
  "类",
  "对象",
  "语法",
  "语义",
  "逻辑",
  "设计",
  "实现",
  "调试",
  "测试",
  "计算",
  "推导",
  "证明",
  "分析",
  "解决",
  "优化",
)

_SENTENCE_SPLIT_RE = re.compile(r"[。\n\r；;]")
_CLAUSE_SPLIT_RE = re.compile(r"[，,]")
_ASSESSMENT_RE = re.compile(r"能够|可以|应该|必须|需要")
_LIST_SPLIT_RE = re.compile(r"[，,；;\n\r]")
_NEGATION_RE = re.compile(r"不包括|排除|除了|不涉及|不包含")
_DOMAIN_PATTERNS: tuple[re.Pattern[str], ...] = (
  re.compile(r"(.+?)(基础|进阶|高级|入门|深入)"),
  re.compile(r"(.+?)(原理|机制|实现|应用)"),
  re.compile(r"(.+?)(设计|架构|模式)"),
)


def _dedupe(values: Iterable[str]) -> tuple[str, ...]:
  """Drop duplicates and blanks while keeping first-seen order."""
  return tuple(dict.fromkeys(value for value in values if value))


def parse_learning_goals(text: str | None) -> LearningGoals:
  """Split goals into sentences and tag capabilities, skills and assessment criteria."""
  if not text or not text.strip():
    return LearningGoals()

  goals: list[str] = []
  capabilities: list[str] = []
  skills: list[str] = []
  criteria: list[str] = []

  for sentence in _SENTENCE_SPLIT_RE.split(text.strip()):
    sentence = sentence.strip()
    if not sentence:
      continue
    goals.append(sentence)
    for clause in _CLAUSE_SPLIT_RE.split(sentence):
      clause = clause.strip()
      if not clause:
        continue
      for keyword in CAPABILITY_KEYWORDS:
        index = clause.find(keyword)
        if index >= 0:
          # Capture the ability phrase from the verb to the end of the clause.
          capabilities.append(clause[index:])
      if any(keyword in clause for keyword in SKILL_KEYWORDS):
        skills.append(clause)
    if _ASSESSMENT_RE.search(sentence):
      criteria.append(sentence)

  deduped_goals = _dedupe(goals)
  return LearningGoals(
    has_goals=bool(deduped_goals),
    goals=deduped_goals,
    capabilities=_dedupe(capabilities),
    skills=_dedupe(skills),
    assessment_criteria=_dedupe(criteria),
  )


def parse_knowledge_points(text: str | None) -> KnowledgePoints:
  """Classify list items as bare points, domains or excluded boundaries."""
  if not text or not text.strip():
    return KnowledgePoints()

  points: list[str] = []
  domains: list[str] = []
  boundaries: list[str] = []

  for item in _LIST_SPLIT_RE.split(text.strip()):
    item = item.strip()
    if not item:
      continue
    if _NEGATION_RE.search(item):
      boundaries.append(_NEGATION_RE.sub("", item).strip())
      continue
    if any(pattern.search(item) for pattern in _DOMAIN_PATTERNS):
      domains.append(item)
      continue
    points.append(item)

  deduped_points, deduped_domains, deduped_boundaries = _dedupe(points), _dedupe(domains), _dedupe(boundaries)
  return KnowledgePoints(
    has_points=bool(deduped_points or deduped_domains or deduped_boundaries),
    points=deduped_points,
    domains=deduped_domains,
    boundaries=deduped_boundaries,
  )


def parse_all_parameters(learning_goals: str | None, knowledge_points: str | None, difficulty: str | None = None) -> ParsedParameters:
  """Parse both free-text inputs and score how complete the constraints are."""
  goals = parse_learning_goals(learning_goals)
  points = parse_knowledge_points(knowledge_points)
  completeness = Completeness(
    has_learning_goals=goals.has_goals,
    has_knowledge_points=points.has_points,
    score=(int(goals.has_goals) + int(points.has_points)) / 2,
  )
  return ParsedParameters(learning_goals=goals, knowledge_points=points, difficulty=(difficulty or "").strip() or get_settings().default_difficulty, completeness=completeness)


class ParseCache:
  """Bounded TTL cache for parse results keyed on the raw inputs."""

  def __init__(self, ttl_seconds: float = 600.0, max_entries: int = 256, clock: Callable[[], float] = time.monotonic) -> None:
    self._ttl = ttl_seconds
    self._max_entries = max_entries
    self._clock = clock
    self._entries: OrderedDict[tuple[str, str, str], tuple[float, ParsedParameters]] = OrderedDict()
    self._lock = threading.Lock()
    self.hits = 0
    self.misses = 0

  def parse(self, learning_goals: str | None, knowledge_points: str | None, difficulty: str | None = None) -> ParsedParameters:
    key = (learning_goals or "", knowledge_points or "", difficulty or "")
    now = self._clock()
    with self._lock:
      cached = self._entries.get(key)
      if cached is not None and now - cached[0] < self._ttl:
        self._entries.move_to_end(key)
        self.hits += 1
        return cached[1]
      self.misses += 1

    parsed = parse_all_parameters(learning_goals, knowledge_points, difficulty)
    with self._lock:
      self._entries[key] = (now, parsed)
      self._entries.move_to_end(key)
      while len(self._entries) > self._max_entries:
        self._entries.popitem(last=False)
    return parsed

  def clear(self) -> None:
    with self._lock:
      self._entries.clear()
