
"""Veredictos produzidos por execução do pipeline (transientes, nunca persistidos como estado)."""
from __future__ import annotations
import re
from dataclasses import dataclass
from enum import Enum
from pydantic import BaseModel, Field

@dataclass(frozen=True)
class CompiledPattern:
    """Regex compilada a partir de uma linha `regex_pattern`."""
    regex: re.Pattern[str]
    action: str
    category: str | None
    source: str

class RegexMatch(BaseModel):
    matched: bool = False
    pattern: str | None = None
    action: str | None = None
    category: str | None = None

class KeywordMatch(BaseModel):
    matched: bool = False
    keyword: str | None = None

class EscalationKeywordHit(BaseModel):
    category: str
    keyword: str

class EscalationMatches(BaseModel):
    matched: bool = False
    matches: list[EscalationKeywordHit] = []

class ModerationAction(BaseModel):
    should_act: bool
    action: str
    threshold: float

class SanitizationResult(BaseModel):
    original: str
    sanitized: str
    blocked: bool = False
    block_reason: str | None = None
    action: str | None = None
    pattern: str | None = None
    warnings: list[str] = []
    degraded: bool = False

class ModerationResult(BaseModel):
    flagged: bool = False
    categories: list[str] = []
    category_actions: dict[str, str] = {}
    scores: dict[str, float] = {}
    should_block: bool = False
    should_escalate: bool = False
    should_flag: bool = False
    error: str | None = None

class EscalationResult(BaseModel):
    should_escalate: bool = False
    type: str | None = None
    reason: str | None = None
    urgency: str = "normal"
    triggers: list[str] = []
    degraded: bool = False

class PipelineState(str, Enum):
    RECEIVED = "RECEIVED"
    SANITIZING = "SANITIZING"
    MODERATING_INPUT = "MODERATING_INPUT"
    ESCALATION_CHECK = "ESCALATION_CHECK"
    BLOCKED_INPUT = "BLOCKED_INPUT"
    BLOCKED_INPUT_WITH_RESOURCES = "BLOCKED_INPUT_WITH_RESOURCES"
    PASSED_FLAGGED = "PASSED_FLAGGED"
    PASSED = "PASSED"
    MODERATING_OUTPUT = "MODERATING_OUTPUT"
    FALLBACK_OUTPUT = "FALLBACK_OUTPUT"
    DELIVERED = "DELIVERED"

class PipelineResult(BaseModel):
    """Decisão sobre a mensagem de entrada."""
    input_passed: bool = True
    sanitized_input: str = ""
    blocked: bool = False
    block_reason: str | None = None
    blocked_by: str | None = None  # estágio que bloqueou
    matched_pattern: str | None = None  # padrão do sanitizer que casou
    action: str | None = None
    escalation: EscalationResult | None = None
    fallback_response: str | None = None
    resources: list[dict] | None = None
    escalation_message: str | None = None
    moderation: ModerationResult | None = None
    state: PipelineState = PipelineState.RECEIVED
    processing_time_ms: int = 0

class OutputResult(BaseModel):
    """Decisão sobre a resposta gerada."""
    passed: bool = True
    final_text: str
    blocked: bool = False
    block_reason: str | None = None
    blocked_by: str | None = None
    moderation: ModerationResult | None = None
    state: PipelineState = PipelineState.DELIVERED

class MessageOutcome(BaseModel):
    """Resultado de ponta a ponta: decisão de entrada + texto entregue ao usuário."""
    input: PipelineResult
    output: OutputResult | None = None
    reply: str
    state: PipelineState
    context: dict = Field(default_factory=dict)
