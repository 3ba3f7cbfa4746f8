"""
Task list parser

Turns pasted client feedback (bullet lists, numbered lists, paragraphs or
plain lines) into task candidates with a title, description and priority.
"""

import re
from typing import Optional

MAX_ITEMS = 100
MAX_TITLE_LENGTH = 120
MAX_DESCRIPTION_LENGTH = 10000

_SPACE_CHARS = r"\u00a0\u2000-\u200f\u2028-\u202f\u205f-\u2060\u3000"

BULLET_OR_NUMBER_PREFIX = re.compile(
    rf"^[ \t]*(?:[-*•●▪◦]|\d{{1,3}}[.)]|[a-zA-Z][.)])[\s{_SPACE_CHARS}]+", re.MULTILINE
)
SENTENCE_END = re.compile(r"[.!?](\s|$)")

LEADING_PHRASES = [
    re.compile(r"^following on from .*?,\s*", re.IGNORECASE),
    re.compile(r"^similar to .*?,\s*", re.IGNORECASE),
    re.compile(r"^from an seo perspective,\s*", re.IGNORECASE),
    re.compile(r"^please\s+", re.IGNORECASE),
]

CRITICAL_KEYWORDS = [
    "critical",
    "urgent",
    "immediately",
    "asap",
    "blocking",
    "not working",
    "broken",
    "completely white",
    "down",
]
HIGH_KEYWORDS = [
    "really important",
    "important",
    "looks bad",
    "breaks the display",
    "needs to be fixed",
    "please fix",
    "issue",
    "wrong",
    "doesn't work",
    "doesnt work",
]
LOW_KEYWORDS = ["if possible", "could we", "how do you feel", "can you tell me"]


def normalize_whitespace(text: str) -> str:
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(f"[{_SPACE_CHARS}]", " ", text)
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def strip_leading_phrases(text: str) -> str:
    for pattern in LEADING_PHRASES:
        text = pattern.sub("", text, count=1)
    return text.strip()


def summarize_title(item: str) -> str:
    """First sentence when it is long enough to stand alone, else the whole item"""
    normalized = re.sub(r"\s+", " ", item).strip()
    stripped = strip_leading_phrases(normalized)

    match = SENTENCE_END.search(stripped)
    if match and match.start() > 20:
        title = stripped[: match.start()].strip()
    else:
        title = stripped
    if not title:
        title = normalized

    if len(title) > MAX_TITLE_LENGTH:
        title = f"{title[:117].rstrip()}..."
    return title


def infer_priority(item: str) -> str:
    lowered = item.lower()
    if any(keyword in lowered for keyword in CRITICAL_KEYWORDS):
        return "critical"
    if any(keyword in lowered for keyword in HIGH_KEYWORDS):
        return "high"
    if any(keyword in lowered for keyword in LOW_KEYWORDS):
        return "low"
    return "medium"


def split_list_items(text: str) -> list[str]:
    text = normalize_whitespace(text)
    if not text:
        return []

    matches = list(BULLET_OR_NUMBER_PREFIX.finditer(text))
    if matches:
        items = []
        for index, match in enumerate(matches):
            end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
            item = text[match.end():end].strip()
            if item:
                items.append(item)
        if items:
            return items

    paragraphs = [part.strip() for part in re.split(r"\n{2,}", text) if part.strip()]
    if len(paragraphs) > 1:
        return paragraphs

    lines = [line.strip() for line in text.split("\n") if line.strip()]
    if len(lines) > 1:
        return lines

    return [text]


def _description(item: str) -> Optional[str]:
    normalized = re.sub(r"\s+", " ", item).strip()
    if not normalized:
        return None
    if len(normalized) > MAX_DESCRIPTION_LENGTH:
        return f"{normalized[: MAX_DESCRIPTION_LENGTH - 3].rstrip()}..."
    return normalized


def parse_task_list(text: str, max_items: int = MAX_ITEMS) -> list[dict]:
    """
    Parse free text into task candidates.

    >>> parse_task_list("1. Update footer links")
    [{'title': 'Update footer links', 'description': 'Update footer links', 'priority': 'medium'}]
    """
    seen = set()
    tasks = []
    for item in split_list_items(text)[: min(max_items, MAX_ITEMS)]:
        task = {
            "title": summarize_title(item),
            "description": _description(item),
            "priority": infer_priority(item),
        }
        key = (task["title"].lower(), (task["description"] or "").lower())
        if key in seen:
            continue
        seen.add(key)
        tasks.append(task)
    return tasks
