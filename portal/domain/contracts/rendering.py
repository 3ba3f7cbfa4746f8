"""Contract template rendering"""

import re
from html import escape
from typing import Any, Optional

from ...security_utils import sanitize_html

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def render_template(content: str, variables: Optional[list[dict]], metadata: Optional[dict[str, Any]]) -> str:
    """
    Fill {{variable}} placeholders and sanitize the result.

    Metadata values win over the variable's default; unknown placeholders
    become empty strings.

    >>> render_template("<p>Hi {{ name }}</p>", [], {"name": "<b>Ann</b>"})
    '<p>Hi &lt;b&gt;Ann&lt;/b&gt;</p>'
    """
    metadata = metadata or {}
    defaults = {var.get("name"): var.get("default") or "" for var in variables or []}

    def replace(match: re.Match) -> str:
        name = match.group(1)
        value = metadata.get(name)
        if value is None or value == "":
            value = defaults.get(name, "")
        return escape(str(value))

    return sanitize_html(PLACEHOLDER_PATTERN.sub(replace, content))
