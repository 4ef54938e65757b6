"""Structured generation constraints derived from free-text input."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class LearningGoals:
  has_goals: bool = False
  goals: tuple[str, ...] = ()
  capabilities: tuple[str, ...] = ()
  skills: tuple[str, ...] = ()
  assessment_criteria: tuple[str, ...] = ()


@dataclass(frozen=True)
class KnowledgePoints:
  has_points: bool = False
  points: tuple[str, ...] = ()
  domains: tuple[str, ...] = ()
  boundaries: tuple[str, ...] = ()


@dataclass(frozen=True)
class Completeness:
  has_learning_goals: bool
  has_knowledge_points: bool
  score: float


@dataclass(frozen=True)
class ParsedParameters:
  """Parsed learning goals and knowledge constraints for one job."""

  learning_goals: LearningGoals
  knowledge_points: KnowledgePoints
  difficulty: str
  completeness: Completeness


@dataclass(frozen=True)
class TopicFocus:
  type: str
  weight: float
  description: str


@dataclass(frozen=True)
class PointAllocation:
  weight: float
  min_count: int
  description: str


@dataclass(frozen=True)
class ContentRequirement:
  text: str
  priority: str


@dataclass(frozen=True)
class DifficultyProfile:
  complexity: str
  depth: str
  scope: str


@dataclass
class GenerationRules:
  """Weighted rules that shape the prompt and the validation criteria."""

  topic_focus: list[TopicFocus] = field(default_factory=list)
  question_distribution: dict[str, PointAllocation] = field(default_factory=dict)
  content_requirements: list[ContentRequirement] = field(default_factory=list)
  validation_criteria: list[str] = field(default_factory=list)
  difficulty_profile: DifficultyProfile | None = None
