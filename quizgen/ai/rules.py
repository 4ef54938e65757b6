"""Map parsed parameters onto weighted generation rules."""

from __future__ import annotations

from quizgen.schema.parameters import ContentRequirement, DifficultyProfile, GenerationRules, ParsedParameters, PointAllocation, TopicFocus

DIFFICULTY_PROFILES: dict[str, DifficultyProfile] = {
  "简单": DifficultyProfile(complexity="low", depth="surface", scope="single"),
  "中等": DifficultyProfile(complexity="medium", depth="moderate", scope="multiple"),
  "困难": DifficultyProfile(complexity="high", depth="deep", scope="comprehensive"),
}
DOMAIN_WEIGHT_FACTOR = 1.5

# (type, weight, description, trigger keywords) in emission order.
_FOCUS_RULES: tuple[tuple[str, float, str, tuple[str, ...]], ...] = (
  ("concept", 0.4, "重点考察概念理解", ("理解", "掌握")),
  ("application", 0.5, "重点考察实际应用", ("应用", "使用")),
  ("analysis", 0.6, "重点考察分析能力", ("分析", "评估")),
)
_SKILL_RULES: tuple[tuple[str, str, tuple[str, ...]], ...] = (
  ("必须包含代码示例", "high", ("代码", "编程")),
  ("必须涉及算法或数据结构", "high", ("算法", "数据结构")),
  ("必须包含计算或推导过程", "medium", ("计算", "推导")),
)


def difficulty_profile(difficulty: str) -> DifficultyProfile:
  """Return the descriptor for a difficulty level, defaulting to the medium profile."""
  return DIFFICULTY_PROFILES.get(difficulty, DIFFICULTY_PROFILES["中等"])


def map_parameters_to_rules(parsed: ParsedParameters) -> GenerationRules:
  """Translate parsed constraints into topic focus, distribution, requirements and criteria."""
  rules = GenerationRules()
  goals = parsed.learning_goals
  if goals.has_goals:
    for focus_type, weight, description, keywords in _FOCUS_RULES:
      if any(keyword in capability for capability in goals.capabilities for keyword in keywords):
        rules.topic_focus.append(TopicFocus(type=focus_type, weight=weight, description=description))
    for text, priority, keywords in _SKILL_RULES:
      if any(keyword in skill for skill in goals.skills for keyword in keywords):
        rules.content_requirements.append(ContentRequirement(text=text, priority=priority))

  knowledge = parsed.knowledge_points
  if knowledge.has_points:
    total = len(knowledge.points) + len(knowledge.domains)
    weight = 1.0 / total if total else 0.0
    for point in knowledge.points:
      rules.question_distribution[point] = PointAllocation(weight=weight, min_count=1, description=f'必须包含关于"{point}"的题目')
    for domain in knowledge.domains:
      rules.question_distribution[domain] = PointAllocation(weight=weight * DOMAIN_WEIGHT_FACTOR, min_count=1, description=f'必须包含关于"{domain}"的题目')
    if knowledge.boundaries:
      rules.content_requirements.append(ContentRequirement(text=f"明确排除以下内容：{'、'.join(knowledge.boundaries)}", priority="high"))

  rules.difficulty_profile = difficulty_profile(parsed.difficulty)
  rules.validation_criteria.append(f"题目难度必须符合{parsed.difficulty}级别要求")
  return rules
