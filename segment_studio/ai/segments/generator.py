"""Natural-language to rule-tree generation."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from openai import OpenAI

from segment_studio.config import get_settings
from segment_studio.core.rules.editor import NEW_RULE_DEFAULTS, IdAllocator, default_tree
from segment_studio.core.rules.exceptions import SegmentRuleError
from segment_studio.core.rules.models import RuleGroup
from segment_studio.core.rules.registry import FieldRegistry
from segment_studio.core.rules.validation import accept_external_tree
from .prompts import build_system_prompt, build_user_prompt

logger = logging.getLogger(__name__)
settings = get_settings()

# (phrases, rule) pairs used when no language model is configured
KEYWORD_RULES: List[Tuple[Tuple[str, ...], Dict[str, str]]] = [
    (("haven't shopped", "inactive"), {"field": "lastPurchaseDate", "operator": "daysAgo", "value": "180"}),
    (("spent over", "spent more than"), {"field": "totalSpend", "operator": "greaterThan", "value": "5000"}),
    (("visited less than", "fewer visits"), {"field": "visits", "operator": "lessThan", "value": "3"}),
]


class SegmentRuleGenerator(ABC):
    """Abstract base class for rule tree generators."""

    @abstractmethod
    def generate(self, query: str, registry: FieldRegistry) -> Optional[Dict[str, Any]]:
        """Turn a query into a candidate tree document.

        Args:
            query: Natural-language audience description
            registry: Fields the tree may use

        Returns:
            Untrusted tree document, or None on failure
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the generator is available/configured."""
        ...


class OpenAISegmentRuleGenerator(SegmentRuleGenerator):
    """OpenAI-based rule tree generator."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.0,
    ):
        """Initialize the OpenAI generator.

        Args:
            api_key: OpenAI API key (defaults to settings)
            model: Model to use (defaults to settings)
            temperature: Temperature for generation
        """
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.openai_model
        self.temperature = temperature
        self._client = None

    @property
    def client(self):
        """Lazy-load the OpenAI client."""
        if self._client is None:
            try:
                self._client = OpenAI(api_key=self.api_key)
            except Exception as e:
                logger.error(f"Failed to initialize OpenAI client: {e}")
                return None
        return self._client

    def is_available(self) -> bool:
        """Check if OpenAI is configured and available."""
        return bool(self.api_key and self.client is not None)

    def generate(self, query: str, registry: FieldRegistry) -> Optional[Dict[str, Any]]:
        if not self.is_available():
            logger.warning("OpenAI not available, skipping rule generation")
            return None

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": build_system_prompt(registry)},
                    {"role": "user", "content": build_user_prompt(query)},
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content
            return json.loads(content) if content else None

        except json.JSONDecodeError as e:
            logger.error(f"OpenAI returned invalid JSON: {e}")
            return None
        except Exception as e:
            logger.error(f"OpenAI generation failed: {e}")
            return None


class KeywordSegmentRuleGenerator(SegmentRuleGenerator):
    """Phrase-matching generator used when no language model is configured."""

    def is_available(self) -> bool:
        """Always available."""
        return True

    def generate(self, query: str, registry: FieldRegistry) -> Optional[Dict[str, Any]]:
        text = query.lower()
        rules = [
            dict(rule, type="rule")
            for phrases, rule in KEYWORD_RULES
            if rule["field"] in registry and any(phrase in text for phrase in phrases)
        ]
        if not rules:
            return None
        return {"type": "group", "combinator": "AND", "children": rules}


def get_rule_generator() -> SegmentRuleGenerator:
    """Get the appropriate rule generator based on configuration."""
    if settings.openai_api_key:
        generator = OpenAISegmentRuleGenerator()
        if generator.is_available():
            return generator

    logger.info("Using keyword rule generator (no OpenAI API key configured)")
    return KeywordSegmentRuleGenerator()


def fallback_tree(allocator: Optional[IdAllocator] = None) -> RuleGroup:
    """Tree used when a query cannot be turned into valid rules."""
    return default_tree(allocator, seed=[NEW_RULE_DEFAULTS])


def build_segment_from_query(
    query: str,
    registry: FieldRegistry,
    generator: Optional[SegmentRuleGenerator] = None,
    allocator: Optional[IdAllocator] = None,
) -> Tuple[RuleGroup, bool]:
    """Generate a validated rule tree for a natural-language query.

    The candidate document is re-validated and given fresh ids. A missing
    or invalid candidate is replaced by the fallback tree.

    Args:
        query: Natural-language audience description
        registry: Field registry to validate against
        generator: Generator to use (defaults to get_rule_generator())
        allocator: Id allocator for the new tree

    Returns:
        (tree, generated) where generated is False if the fallback was used
    """
    generator = generator or get_rule_generator()
    allocator = allocator or IdAllocator()

    candidate = generator.generate(query, registry)
    if candidate is None:
        logger.info(f"No rules generated for query {query!r}, using fallback")
        return fallback_tree(allocator), False

    try:
        return accept_external_tree(candidate, registry, allocator), True
    except SegmentRuleError as e:
        logger.warning(f"Generated rules rejected ({e}), using fallback")
        return fallback_tree(allocator), False
