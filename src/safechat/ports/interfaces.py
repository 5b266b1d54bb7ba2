
"""Portas hexagonais (interfaces) e DTOs dos colaboradores externos."""
from __future__ import annotations
from typing import Any, Protocol
from pydantic import BaseModel, Field

RULE_TYPES = ("blocked_keyword", "escalation_keyword", "regex_pattern", "allowed_topic")
RULE_ACTIONS = ("block", "escalate", "flag", "warn")

class SafetyRuleDTO(BaseModel):
    """Linha de regra como lida do backing store."""
    id: str | None = None
    rule_type: str = "regex_pattern"
    category: str | None = None
    value: str
    action: str = "block"
    priority: int = 0
    enabled: bool = True
    description: str | None = None

class ModerationThresholdDTO(BaseModel):
    category: str
    threshold: float = Field(ge=0.0, le=1.0)
    action: str = "block"

class EscalationKeywordSetDTO(BaseModel):
    category: str
    keywords: list[str] = []
    priority: int = 0
    response_template: str | None = None

class ClassifierOutput(BaseModel):
    """Saída normalizada do classificador (formato /moderations)."""
    flagged: bool = False
    categories: dict[str, bool] = {}
    category_scores: dict[str, float] = {}

class RuleBackingStore(Protocol):
    def list_active_regex_patterns(self) -> list[SafetyRuleDTO]: ...
    def list_active_blocked_keywords(self) -> list[str]: ...
    def list_active_escalation_keyword_sets(self) -> list[EscalationKeywordSetDTO]: ...
    def list_active_moderation_thresholds(self) -> list[ModerationThresholdDTO]: ...
    def get_system_setting(self, key: str) -> Any: ...

class ContentClassifier(Protocol):
    def classify(self, text: str) -> ClassifierOutput: ...

class ReplyGenerator(Protocol):
    def generate(self, history: list[dict], context: dict) -> str: ...

class Retriever(Protocol):
    def retrieve(self, query: str) -> dict: ...

class AuditSink(Protocol):
    def log_decision(self, stage: str, verdict: dict, truncated_input: str) -> None: ...
