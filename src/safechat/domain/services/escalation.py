
"""Classificador de escalonamento: decide se um humano precisa ser acionado e com qual urgência.

Nunca bloqueia conteúdo sozinho. `triggers` é multi-rótulo (todas as categorias que
casaram, para auditoria); apenas a vencedora define type/reason/urgency.
"""
from __future__ import annotations
import re
from typing import Iterable
from kink import di
from ...core.logging import get_logger
from ..defaults import (
    FALLBACK_COMPLAINT_PATTERNS,
    FALLBACK_CRISIS_PATTERNS,
    FALLBACK_LEGAL_PATTERNS,
    FALLBACK_REFUND_PATTERNS,
    FALLBACK_SENTIMENT_MIN_MATCHES,
    FALLBACK_SENTIMENT_PATTERNS,
    escalation_category,
)
from ..responses import escalation_response
from ..verdicts import EscalationMatches, EscalationResult
from .rule_store import RuleStore

log = get_logger()

def _verdict(category: str, triggers: list[str], degraded: bool = False) -> EscalationResult:
    cfg = escalation_category(category)
    return EscalationResult(
        should_escalate=True,
        type=category,
        reason=cfg.reason,
        urgency=cfg.urgency,
        triggers=triggers,
        degraded=degraded,
    )

def resolve_matches(matches: EscalationMatches) -> EscalationResult:
    """Agrupa por categoria e escolhe a de maior prioridade (empate: a primeira vista)."""
    if not matches.matched:
        return EscalationResult()
    grouped: dict[str, list[str]] = {}
    for hit in matches.matches:
        grouped.setdefault(hit.category, []).append(hit.keyword)
    top = None
    for category in grouped:
        if top is None or escalation_category(category).priority > escalation_category(top).priority:
            top = category
    return _verdict(top, [f"{c}_keyword" for c in grouped])

def _count(patterns: Iterable[re.Pattern[str]], text: str) -> int:
    return sum(1 for rx in patterns if rx.search(text))

def _distinct_hits(patterns: Iterable[re.Pattern[str]], text: str) -> set[str]:
    """Termos distintos (case-insensitive) que casaram em qualquer padrão."""
    return {m.group(0).lower() for rx in patterns for m in rx.finditer(text)}

def analyze_fallback(text: str) -> EscalationResult:
    """Detecção embutida para quando o rule store está fora.

    Mesma ordem de prioridade; crise retorna imediatamente; sentimento negativo
    exige FALLBACK_SENTIMENT_MIN_MATCHES termos distintos.
    """
    if _count(FALLBACK_CRISIS_PATTERNS, text):
        return _verdict("crisis", ["crisis_keyword"], degraded=True)

    triggers: list[str] = []
    winner = None
    if _count(FALLBACK_LEGAL_PATTERNS, text):
        triggers.append("legal_keyword")
        winner = winner or "legal"
    if _count(FALLBACK_COMPLAINT_PATTERNS, text):
        triggers.append("complaint_keyword")
        winner = winner or "complaint"
    if _count(FALLBACK_REFUND_PATTERNS, text):
        triggers.append("refund_keyword")
    negative = len(_distinct_hits(FALLBACK_SENTIMENT_PATTERNS, text))
    if negative:
        triggers.append("sentiment_keyword")
        if negative >= FALLBACK_SENTIMENT_MIN_MATCHES:
            winner = winner or "sentiment"

    if winner is None:
        return EscalationResult(triggers=triggers, degraded=True)
    return _verdict(winner, triggers, degraded=True)

class EscalationClassifier:
    def __init__(self, store: RuleStore | None = None):
        self.store = store or di[RuleStore]

    def analyze(self, text: str) -> EscalationResult:
        res = self.store.match_escalation_keywords(text)
        if res.ok:
            result = resolve_matches(res.value)
        else:
            log.warning("rule_store_degraded_escalation", error=res.error.detail)
            result = analyze_fallback(text)
        if result.should_escalate:
            log.info("escalation_detected", type=result.type, reason=result.reason, urgency=result.urgency, triggers=result.triggers)
        return result

    def response(self, result: EscalationResult) -> dict:
        """Mensagem para o usuário: recursos para crise, confirmação de handoff para o resto."""
        templates = self.store.get_response_templates()
        template = templates.value.get(result.type) if result.type else None
        return escalation_response(result.type, template, urgency=result.urgency)
