"""Classification vocabulary shared by the ticket analyzer and the workload estimator"""

TICKET_CATEGORIES = {
    "technical-support": {
        "description": "Technical issues, bugs, errors, troubleshooting",
        "keywords": ["error", "bug", "broken", "not working", "crash", "slow", "issue"],
        "default_priority": "medium",
        "typical_hours": 2,
    },
    "billing": {
        "description": "Invoice, payment, pricing, subscription questions",
        "keywords": ["invoice", "payment", "charge", "bill", "price", "cost", "refund"],
        "default_priority": "medium",
        "typical_hours": 1,
    },
    "general-inquiry": {
        "description": "General questions, information requests",
        "keywords": ["question", "how do", "can you", "wondering", "information"],
        "default_priority": "low",
        "typical_hours": 0.5,
    },
    "bug-report": {
        "description": "Software bugs requiring investigation and fix",
        "keywords": ["bug", "defect", "regression", "broken feature", "unexpected behavior"],
        "default_priority": "high",
        "typical_hours": 4,
    },
    "feature-request": {
        "description": "New feature suggestions or enhancements",
        "keywords": ["feature", "enhancement", "would be nice", "suggestion", "could you add"],
        "default_priority": "low",
        "typical_hours": 0.5,  # Intake only, not implementation
    },
    "urgent": {
        "description": "Critical issues requiring immediate attention",
        "keywords": ["urgent", "emergency", "down", "critical", "asap", "immediately"],
        "default_priority": "critical",
        "typical_hours": 1,
    },
}

DEFAULT_CATEGORY = "general-inquiry"

ESCALATION_TRIGGERS = [
    "security",
    "data breach",
    "legal",
    "lawsuit",
    "compliance",
    "gdpr",
    "down",
    "outage",
    "all users affected",
    "revenue loss",
    "cannot process payments",
]

COMPLEXITY_INDICATORS = {
    "high": [
        "multiple systems",
        "integration",
        "database migration",
        "security",
        "performance optimization",
        "architecture change",
        "third-party api",
    ],
    "medium": [
        "investigation needed",
        "debugging",
        "configuration change",
        "update",
        "modification",
    ],
    "low": [
        "simple fix",
        "typo",
        "text change",
        "quick question",
        "how to",
    ],
}

TICKET_ANALYSIS_PROMPT = """You are an AI assistant for a web development agency's support ticket system.
Analyze the ticket and respond with a JSON object containing:
category (one of: {categories}), priority (low, medium, high, critical),
estimated_hours (number), complexity (0.1 to 1.0), needs_escalation (boolean)
and summary (one sentence).
Be conservative with priority - only mark as critical if truly urgent
(system down, security issue, revenue impact)."""
