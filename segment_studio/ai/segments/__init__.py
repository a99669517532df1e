"""Natural-language segment generation."""

from .generator import (
    SegmentRuleGenerator,
    OpenAISegmentRuleGenerator,
    KeywordSegmentRuleGenerator,
    get_rule_generator,
    build_segment_from_query,
    fallback_tree,
)

__all__ = [
    "SegmentRuleGenerator",
    "OpenAISegmentRuleGenerator",
    "KeywordSegmentRuleGenerator",
    "get_rule_generator",
    "build_segment_from_query",
    "fallback_tree",
]
