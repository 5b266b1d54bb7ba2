"""Dados de seed: padrões de injection, conjuntos de escalonamento e limiares de moderação."""
from ..domain.defaults import INJECTION_PATTERNS

# Mesma lista do fallback embutido
SEED_REGEX_PATTERNS = [dict(p) for p in INJECTION_PATTERNS]

SEED_ESCALATION_SETS = [
    {
        "category": "crisis",
        "priority": 100,
        "keywords": [
            "suicid", "kill myself", "end my life", "end it all", "take my life", "take my own life",
            "self-harm", "selfharm", "cutting myself", "cut myself", "hurting myself", "hurt myself",
            "want to die", "dont want to live", "don't want to live", "better off dead",
            "overdose", "pills to end", "pills to die",
        ],
    },
    {
        "category": "legal",
        "priority": 80,
        "keywords": [
            "lawyer", "attorney", "legal action", "legal counsel", "legal team",
            "lawsuit", "suing", "litigation", "class action", "legal proceedings",
        ],
    },
    {
        "category": "complaint",
        "priority": 60,
        "keywords": [
            "speak to manager", "speak with manager", "speak to supervisor", "speak to human", "speak to agent",
            "escalate", "escalation", "complaint", "file a complaint",
            "unacceptable", "outrageous", "ridiculous", "terrible service",
            "better business bureau", "consumer protection",
        ],
    },
    {
        "category": "sentiment",
        "priority": 40,
        "keywords": [
            "angry", "furious", "livid", "outraged", "disgusted",
            "worst", "terrible", "horrible", "awful", "pathetic",
            "hate", "despise", "loathe",
            "never again", "never buying", "never using", "never recommending",
            "waste of time", "waste of money",
        ],
    },
]

SEED_MODERATION_THRESHOLDS = [
    {"category": "hate", "threshold": 0.7, "action": "block"},
    {"category": "hate/threatening", "threshold": 0.7, "action": "block"},
    {"category": "harassment", "threshold": 0.7, "action": "block"},
    {"category": "harassment/threatening", "threshold": 0.7, "action": "block"},
    {"category": "self-harm", "threshold": 0.5, "action": "escalate"},
    {"category": "self-harm/intent", "threshold": 0.5, "action": "escalate"},
    {"category": "self-harm/instructions", "threshold": 0.7, "action": "block"},
    {"category": "sexual", "threshold": 0.8, "action": "block"},
    {"category": "sexual/minors", "threshold": 0.1, "action": "block"},
    {"category": "violence", "threshold": 0.8, "action": "flag"},
    {"category": "violence/graphic", "threshold": 0.7, "action": "block"},
    {"category": "illicit", "threshold": 0.7, "action": "block"},
    {"category": "illicit/violent", "threshold": 0.5, "action": "block"},
]
