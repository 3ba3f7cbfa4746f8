"""
Tests for ticket analysis: keyword heuristics and model output normalization.
"""

import asyncio

from portal.domain.ai import client as ai_client
from portal.domain.ai.ticket_analyzer import (
    analyze_ticket,
    classify_category,
    find_escalation_trigger,
    heuristic_analysis,
    score_complexity,
)


def _fake_model(monkeypatch, result=None, error=None):
    async def complete_json(system_prompt, user_prompt, **kwargs):
        if error:
            raise error
        return result

    monkeypatch.setattr(ai_client, "is_available", lambda: True)
    monkeypatch.setattr(ai_client, "complete_json", complete_json)


# =============================================================================
# Heuristics
# =============================================================================


class TestHeuristics:
    """Tests for keyword classification."""

    def test_category_with_most_hits(self):
        assert classify_category("Invoice payment was charged twice") == "billing"

    def test_unknown_text_is_general_inquiry(self):
        assert classify_category("Hello there") == "general-inquiry"

    def test_escalation_trigger(self):
        assert find_escalation_trigger("Checkout", "We cannot process payments since noon") == "cannot process payments"
        assert find_escalation_trigger("Footer colour") is None

    def test_outage_is_critical(self):
        result = heuristic_analysis("Site is down")
        assert result["category"] == "urgent"
        assert result["priority"] == "critical"
        assert result["needs_escalation"] is True
        assert result["escalation_reason"] == 'Contains escalation trigger: "down"'
        assert result["source"] == "heuristic"

    def test_question_is_low_priority(self):
        result = heuristic_analysis("How do I change my password?")
        assert result["category"] == "general-inquiry"
        assert result["priority"] == "low"
        assert result["estimated_hours"] == 0.5

    def test_complexity_bounds(self):
        assert score_complexity("Typo on about page") == 0.2
        assert score_complexity("Integration with a third-party api across multiple systems") == 0.75
        assert score_complexity("simple fix typo text change quick question how to") == 0.1


# =============================================================================
# Model-backed analysis
# =============================================================================


class TestAnalyzeTicket:
    """Tests for analyze_ticket with and without a model."""

    def test_without_api_key_uses_heuristics(self):
        result = asyncio.run(analyze_ticket("Payment page shows an error"))
        assert result["source"] == "heuristic"

    def test_model_output_is_normalized(self, monkeypatch):
        _fake_model(
            monkeypatch,
            result={
                "category": "nonsense",
                "priority": "urgent",
                "estimated_hours": "-1",
                "complexity": 5,
                "needs_escalation": False,
                "summary": "Customer reports a breach",
            },
        )
        result = asyncio.run(analyze_ticket("Possible data breach reported"))

        assert result["source"] == "ai"
        assert result["category"] == "general-inquiry"
        assert result["priority"] == "medium"
        assert result["estimated_hours"] == 0.5
        assert result["complexity"] == 1.0
        assert result["needs_escalation"] is True
        assert result["summary"] == "Customer reports a breach"

    def test_model_failure_falls_back(self, monkeypatch):
        _fake_model(monkeypatch, error=ai_client.AIUnavailableError("timeout"))
        result = asyncio.run(analyze_ticket("Invoice question"))
        assert result["source"] == "heuristic"
        assert result["category"] == "billing"

    def test_endpoint_for_agency_users_only(self, client, headers, staff, client_user):
        payload = {"title": "Website is down", "description": "All pages return 500"}
        response = client.post("/ai/analyze-ticket", json=payload, headers=headers(staff))
        assert response.status_code == 200
        assert response.json()["priority"] == "critical"
        assert client.post("/ai/analyze-ticket", json=payload, headers=headers(client_user)).status_code == 403
