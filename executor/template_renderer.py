import re
from typing import List, Mapping, Optional, Union

from models.template import TemplateVariables

# `{{key}}` with an ASCII identifier and no inner whitespace.
PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}", re.ASCII)

Variables = Union[TemplateVariables, Mapping[str, str]]


def _as_mapping(variables: Optional[Variables]) -> Mapping[str, str]:
    if variables is None:
        return {}
    if isinstance(variables, TemplateVariables):
        return variables.as_mapping()
    return variables


def render(template: Optional[str], variables: Optional[Variables]) -> str:
    """
    Replaces every `{{key}}` whose key is in `variables` with its value.

    Substitution is a single pass, so values are never re-scanned for
    placeholders. Unknown keys stay in the output as literal `{{key}}` text.
    No escaping is applied.
    """
    if not template:
        return ""
    mapping = _as_mapping(variables)

    def _substitute(match):
        key = match.group(1)
        return mapping[key] if key in mapping else match.group(0)

    return PLACEHOLDER_PATTERN.sub(_substitute, template)


def placeholders(template: Optional[str]) -> List[str]:
    """Placeholder keys in order of first appearance."""
    seen: List[str] = []
    for key in PLACEHOLDER_PATTERN.findall(template or ""):
        if key not in seen:
            seen.append(key)
    return seen


def missing(template: Optional[str], variables: Optional[Variables]) -> List[str]:
    """Placeholder keys the variables do not cover."""
    mapping = _as_mapping(variables)
    return [key for key in placeholders(template) if key not in mapping]
