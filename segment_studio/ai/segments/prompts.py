"""Prompt templates for natural-language segment generation."""

from segment_studio.core.rules.registry import FieldRegistry

SEGMENT_SYSTEM_PROMPT = """You are a CRM expert that converts natural language queries into structured segment rules.

The valid fields are:
{field_lines}

Return a JSON object shaped like this:
{{"type": "group", "combinator": "AND", "children": [
  {{"type": "rule", "field": "totalSpend", "operator": "greaterThan", "value": "5000"}},
  {{"type": "group", "combinator": "OR", "children": [...]}}
]}}

Rules:
- "combinator" is "AND" or "OR".
- "value" is always a string. Dates use YYYY-MM-DD.
- "between" takes two bounds separated by a comma, e.g. "100,500".
- "daysAgo" takes a whole number of days.
- Only use the fields and operators listed above.

Respond with ONLY a valid JSON object with no explanation.
"""

SEGMENT_USER_PROMPT = 'Convert this query to segment rules: "{query}"'


def build_system_prompt(registry: FieldRegistry) -> str:
    """Build the system prompt listing every field with its operators.

    Args:
        registry: Field registry the generated tree must validate against

    Returns:
        Formatted prompt string
    """
    field_lines = "\n".join(
        f"- {descriptor.key} ({descriptor.semantic_type.value}): {', '.join(descriptor.operators)}"
        for descriptor in registry
    )
    return SEGMENT_SYSTEM_PROMPT.format(field_lines=field_lines)


def build_user_prompt(query: str) -> str:
    """Build the user message for one query."""
    return SEGMENT_USER_PROMPT.format(query=query.strip())
