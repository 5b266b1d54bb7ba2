"""Regras embutidas usadas quando o backing store está fora do ar.

Também servem de seed inicial (ver repo.rules_repo.seed_defaults).
"""
from __future__ import annotations
import re
from typing import NamedTuple

MODERATION_CATEGORIES = (
    "hate",
    "hate/threatening",
    "harassment",
    "harassment/threatening",
    "self-harm",
    "self-harm/intent",
    "self-harm/instructions",
    "sexual",
    "sexual/minors",
    "violence",
    "violence/graphic",
    "illicit",
    "illicit/violent",
)

# Categoria sem limiar configurado
UNKNOWN_CATEGORY_THRESHOLD = 0.7
UNKNOWN_CATEGORY_ACTION = "flag"

DEFAULT_CACHE_TTL_MS = 5 * 60 * 1000

# ---------- Padrões de prompt injection: fonte única ----------
# Alimenta o fallback do rule store, a lista fixa do sanitizer e o seed do banco.
INJECTION_PATTERNS: list[dict] = [
    # sobrescrever instruções
    {"value": r"ignore\s+(all\s+)?(previous|prior|above)\s+(instructions?|prompts?|rules?)", "category": "injection", "description": "Ignore previous instructions"},
    {"value": r"disregard\s+(all\s+)?(previous|prior|your)\s+(instructions?|prompts?|rules?)", "category": "injection", "description": "Disregard instructions"},
    {"value": r"forget\s+(all\s+)?(previous|prior|your)\s+(instructions?|prompts?)", "category": "injection", "description": "Forget instructions"},
    # manipulação de identidade
    {"value": r"you\s+are\s+now\s+(a|an|the)", "category": "injection", "description": "Identity override"},
    {"value": r"pretend\s+(you\s+are|to\s+be|you're)", "category": "injection", "description": "Pretend"},
    {"value": r"act\s+as\s+(if\s+you\s+are|a|an)", "category": "injection", "description": "Act as"},
    {"value": r"roleplay\s+as", "category": "injection", "description": "Roleplay"},
    {"value": r"new\s+persona", "category": "injection", "description": "New persona"},
    {"value": r"system\s*:\s*", "category": "injection", "description": "System prompt injection"},
    {"value": r"\[system\]", "category": "injection", "description": "System tag injection"},
    {"value": r"<system>", "category": "injection", "description": "System XML injection"},
    # extração do prompt de sistema
    {"value": r"reveal\s+(your|the)\s+(system\s+)?(prompt|instructions?)", "category": "extraction", "description": "Reveal prompt"},
    {"value": r"show\s+(me\s+)?(your|the)\s+(system\s+)?(prompt|instructions?)", "category": "extraction", "description": "Show prompt"},
    {"value": r"what\s+(are|is)\s+your\s+(system\s+)?(prompt|instructions?)", "category": "extraction", "description": "What is your prompt"},
    {"value": r"output\s+(your|the)\s+(initial|system)\s+(prompt|instructions?)", "category": "extraction", "description": "Output prompt"},
    {"value": r"print\s+(your|the)\s+(system\s+)?(prompt|instructions?)", "category": "extraction", "description": "Print prompt"},
    {"value": r"repeat\s+(your|the)\s+(system\s+)?(prompt|instructions?)", "category": "extraction", "description": "Repeat prompt"},
    # jailbreaks conhecidos
    {"value": r"ignore\s+safety", "category": "bypass", "description": "Ignore safety"},
    {"value": r"bypass\s+(safety|filters?|restrictions?)", "category": "bypass", "description": "Bypass safety"},
    {"value": r"jailbreak", "category": "bypass", "description": "Jailbreak keyword"},
    {"value": r"DAN\s*mode", "category": "bypass", "description": "DAN mode"},
    {"value": r"developer\s*mode", "category": "bypass", "description": "Developer mode"},
]

# ---------- Rule store: fallback por subtipo ----------
DEFAULT_INJECTION_PATTERNS: list[dict] = [
    {"value": p["value"], "action": "block", "category": p["category"]} for p in INJECTION_PATTERNS
]

# Sem keywords bloqueadas embutidas: os padrões regex cobrem o fallback
DEFAULT_BLOCKED_KEYWORDS: list[str] = []

DEFAULT_ESCALATION_KEYWORDS: dict[str, list[str]] = {
    "crisis": ["suicid", "kill myself", "end my life", "self-harm", "want to die"],
    "legal": ["lawyer", "attorney", "lawsuit", "sue", "legal action"],
    "complaint": ["speak to manager", "escalate", "complaint", "unacceptable"],
    "sentiment": ["angry", "furious", "worst", "terrible", "hate"],
}

DEFAULT_MODERATION_THRESHOLDS: dict[str, dict] = {
    "hate": {"threshold": 0.7, "action": "block"},
    "hate/threatening": {"threshold": 0.5, "action": "block"},
    "harassment": {"threshold": 0.7, "action": "block"},
    "harassment/threatening": {"threshold": 0.5, "action": "block"},
    "self-harm": {"threshold": 0.5, "action": "block"},
    "self-harm/intent": {"threshold": 0.3, "action": "block"},
    "self-harm/instructions": {"threshold": 0.3, "action": "block"},
    "sexual": {"threshold": 0.8, "action": "block"},
    "sexual/minors": {"threshold": 0.3, "action": "block"},
    "violence": {"threshold": 0.7, "action": "block"},
    "violence/graphic": {"threshold": 0.7, "action": "block"},
    "illicit": {"threshold": 0.7, "action": "block"},
    "illicit/violent": {"threshold": 0.5, "action": "block"},
}

# ---------- Sanitizer: lista fixa usada quando o rule store falha ----------
FALLBACK_INJECTION_PATTERNS: list[re.Pattern[str]] = [re.compile(p["value"], re.IGNORECASE) for p in INJECTION_PATTERNS]

# ---------- Escalation: detecção embutida (modo fallback) ----------
def _compile_all(sources: list[str]) -> list[re.Pattern[str]]:
    return [re.compile(s, re.IGNORECASE) for s in sources]

FALLBACK_CRISIS_PATTERNS = _compile_all([
    r"\b(suicid\w*|kill\s*(myself|me)|end\s*(my\s*life|it\s*all)|take\s*my\s*(own\s*)?life)\b",
    r"\b(self[- ]?harm|cut(ting)?\s*(myself|me)|hurt(ing)?\s*(myself|me))\b",
    r"\b(want\s*to\s*die|don'?t\s*want\s*to\s*live|better\s*off\s*dead)\b",
    r"\b(overdose|od\s*on|pills\s*to\s*(end|die))\b",
])
FALLBACK_LEGAL_PATTERNS = _compile_all([
    r"\b(lawyer|attorney|legal\s*(action|counsel|team))\b",
    r"\b(lawsuit|sue|suing|litigation|court)\b",
    r"\b(class\s*action|legal\s*proceedings)\b",
])
FALLBACK_COMPLAINT_PATTERNS = _compile_all([
    r"\b(speak\s*(to|with)\s*(a\s*)?(manager|supervisor|human|person|agent))\b",
    r"\b(escalate|escalation|complaint|complain)\b",
    r"\b(report\s*(this|you)|file\s*a\s*complaint)\b",
    r"\b(unacceptable|outrageous|ridiculous|terrible\s*service)\b",
    r"\b(bbb|better\s*business\s*bureau|consumer\s*protection)\b",
])
FALLBACK_REFUND_PATTERNS = _compile_all([
    r"\b(refund|money\s*back|charge\s*back|chargeback)\b",
    r"\b(stolen|fraud|scam|rip\s*off|ripoff)\b",
])
FALLBACK_SENTIMENT_PATTERNS = _compile_all([
    r"\b(angry|furious|livid|outraged|disgusted)\b",
    r"\b(worst|terrible|horrible|awful|pathetic)\b",
    r"\b(hate|despise|loathe)\b",
    r"\b(never\s*(again|buying|using|recommending))\b",
    r"\b(waste\s*of\s*(time|money))\b",
])

# Mínimo de padrões de sentimento negativo distintos no modo fallback
FALLBACK_SENTIMENT_MIN_MATCHES = 2

# ---------- Tabela de prioridade das categorias de escalonamento ----------
class EscalationCategory(NamedTuple):
    category: str
    priority: int
    urgency: str
    reason: str

_CATEGORY_TABLE = [
    EscalationCategory("crisis", 100, "critical", "CRISIS_DETECTED"),
    EscalationCategory("legal", 80, "high", "LEGAL_CONCERN"),
    EscalationCategory("complaint", 60, "medium", "ESCALATION_REQUESTED"),
    EscalationCategory("sentiment", 40, "medium", "NEGATIVE_SENTIMENT"),
]
ESCALATION_CATEGORIES: tuple[EscalationCategory, ...] = tuple(sorted(_CATEGORY_TABLE, key=lambda c: c.priority, reverse=True))
_BY_NAME = {c.category: c for c in ESCALATION_CATEGORIES}

def escalation_category(name: str) -> EscalationCategory:
    """Config da categoria; categoria desconhecida = prioridade 50, urgência medium."""
    return _BY_NAME.get(name) or EscalationCategory(name, 50, "medium", "ESCALATION_TRIGGERED")
