"""
Placeholder Engine - `{{name}}` / `{{name|default}}` substitution for template markup.

Text is consumed verbatim: no HTML escaping is applied to substituted values.
"""

import re
from typing import Mapping

# Name is restricted to word characters; the default runs up to the closing braces.
PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)(?:\|([^}]*))?\}\}")


def substitute(text: str, values: Mapping[str, str]) -> str:
    """
    Replace every placeholder in `text` with its value.

    Resolution order for each `{{name|default}}`:
    1. `values[name]` if the key is present and non-empty
    2. the inline default if one is given (present-but-empty also lands here)
    3. the empty string

    Malformed placeholder syntax (unbalanced braces, non-word names) is left
    untouched.
    """

    def _replace(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        value = values.get(name)
        if value:
            return str(value)
        if default is not None:
            return default
        return ""

    return PLACEHOLDER_PATTERN.sub(_replace, text)


def placeholder_names(text: str) -> list[str]:
    """Return placeholder names in order of first appearance."""
    seen: list[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(text):
        if match.group(1) not in seen:
            seen.append(match.group(1))
    return seen
