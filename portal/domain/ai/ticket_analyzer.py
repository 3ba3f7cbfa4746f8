"""
Ticket analysis

Asks the model for a structured classification and falls back to keyword
heuristics when the model is unavailable or its answer is unusable.
"""

import logging
from typing import Optional

from ..tickets.priority import PRIORITIES
from . import client
from .config import (
    COMPLEXITY_INDICATORS,
    DEFAULT_CATEGORY,
    ESCALATION_TRIGGERS,
    TICKET_ANALYSIS_PROMPT,
    TICKET_CATEGORIES,
)

logger = logging.getLogger(__name__)


def _text(title: str, description: Optional[str]) -> str:
    return f"{title or ''} {description or ''}".lower()


def find_escalation_trigger(title: str, description: Optional[str] = None) -> Optional[str]:
    text = _text(title, description)
    for trigger in ESCALATION_TRIGGERS:
        if trigger in text:
            return trigger
    return None


def classify_category(title: str, description: Optional[str] = None) -> str:
    """Category with the most keyword hits; ties go to the first listed"""
    text = _text(title, description)
    best, best_hits = DEFAULT_CATEGORY, 0
    for category, config in TICKET_CATEGORIES.items():
        hits = sum(1 for keyword in config["keywords"] if keyword in text)
        if hits > best_hits:
            best, best_hits = category, hits
    return best


def score_complexity(title: str, description: Optional[str] = None) -> float:
    """0.1 (trivial) to 1.0 (very complex) from indicator phrases and description length"""
    text = _text(title, description)
    score = 0.3
    score += 0.15 * sum(1 for phrase in COMPLEXITY_INDICATORS["high"] if phrase in text)
    score += 0.08 * sum(1 for phrase in COMPLEXITY_INDICATORS["medium"] if phrase in text)
    score -= 0.1 * sum(1 for phrase in COMPLEXITY_INDICATORS["low"] if phrase in text)

    length = len(description or "")
    if length > 1000:
        score += 0.1
    if length > 2000:
        score += 0.1

    return round(max(0.1, min(1.0, score)), 2)


def heuristic_analysis(title: str, description: Optional[str] = None) -> dict:
    category = classify_category(title, description)
    trigger = find_escalation_trigger(title, description)
    priority = "critical" if trigger else TICKET_CATEGORIES[category]["default_priority"]
    return {
        "category": category,
        "priority": priority,
        "estimated_hours": TICKET_CATEGORIES[category]["typical_hours"],
        "complexity": score_complexity(title, description),
        "needs_escalation": trigger is not None,
        "escalation_reason": f'Contains escalation trigger: "{trigger}"' if trigger else None,
        "summary": (title or "").strip()[:200],
        "source": "heuristic",
    }


def _normalize(result: dict, title: str, description: Optional[str]) -> dict:
    """Coerce model output onto the known vocabulary, filling gaps from heuristics"""
    fallback = heuristic_analysis(title, description)

    category = result.get("category")
    if category not in TICKET_CATEGORIES:
        category = fallback["category"]

    priority = result.get("priority")
    if priority not in PRIORITIES:
        priority = "medium"

    try:
        hours = float(result.get("estimated_hours"))
        if hours <= 0:
            raise ValueError(hours)
    except (TypeError, ValueError):
        hours = TICKET_CATEGORIES[category]["typical_hours"]

    try:
        complexity = max(0.1, min(1.0, float(result.get("complexity"))))
    except (TypeError, ValueError):
        complexity = fallback["complexity"]

    needs_escalation = bool(result.get("needs_escalation"))
    reason = result.get("escalation_reason")
    if not needs_escalation and fallback["needs_escalation"]:
        needs_escalation = True
        reason = fallback["escalation_reason"]

    return {
        "category": category,
        "priority": priority,
        "estimated_hours": round(hours, 1),
        "complexity": round(complexity, 2),
        "needs_escalation": needs_escalation,
        "escalation_reason": reason,
        "summary": str(result.get("summary") or fallback["summary"])[:500],
        "source": "ai",
    }


async def analyze_ticket(title: str, description: Optional[str] = None) -> dict:
    """Classify a ticket: category, priority, estimated_hours, complexity, needs_escalation, summary"""
    if not client.is_available():
        return heuristic_analysis(title, description)

    system_prompt = TICKET_ANALYSIS_PROMPT.format(categories=", ".join(TICKET_CATEGORIES))
    user_prompt = f"Subject: {title}\n\nDescription:\n{description or '(none)'}"
    try:
        result = await client.complete_json(system_prompt, user_prompt)
    except client.AIUnavailableError as e:
        logger.warning(f"⚠️ Falling back to heuristic ticket analysis: {e}")
        return heuristic_analysis(title, description)

    return _normalize(result, title, description)
