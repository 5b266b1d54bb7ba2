
"""Sanitização de entrada: triagem de prompt injection + limpeza de formatação.

Ordem estrita:
1. padrões regex do rule store (primeiro match bloqueia);
2. keywords bloqueadas do rule store;
3. rule store degradado -> reexecuta com FALLBACK_INJECTION_PATTERNS (a triagem nunca some);
4. remove spans `<...>`; 5. colapsa espaços; 6. vazio -> bloqueia.
"""
from __future__ import annotations
import re
from kink import di
from ...core.logging import get_logger, truncate_for_log
from ..defaults import FALLBACK_INJECTION_PATTERNS
from ..verdicts import SanitizationResult
from .rule_store import RuleStore

log = get_logger()

PROMPT_INJECTION_DETECTED = "PROMPT_INJECTION_DETECTED"
EMPTY_AFTER_SANITIZATION = "EMPTY_AFTER_SANITIZATION"
HTML_TAGS_REMOVED = "HTML_TAGS_REMOVED"

HTML_PATTERN = re.compile(r"<[^>]*>")
WHITESPACE = re.compile(r"\s+")

def strip_markup(text: str) -> str:
    """Remove qualquer span entre sinais de menor/maior."""
    return HTML_PATTERN.sub("", text)

def normalize_whitespace(text: str) -> str:
    return WHITESPACE.sub(" ", text).strip()

def detect_injection_fallback(text: str) -> str | None:
    """Triagem síncrona com a lista fixa; retorna o padrão que casou."""
    for rx in FALLBACK_INJECTION_PATTERNS:
        if rx.search(text):
            return rx.pattern
    return None

class Sanitizer:
    def __init__(self, store: RuleStore | None = None):
        self.store = store or di[RuleStore]

    def _detect(self, text: str) -> dict | None:
        """Retorna dict com pattern/action/category do bloqueio, ou None."""
        regex = self.store.match_regex(text)
        if regex.ok and regex.value.matched:
            m = regex.value
            return {"pattern": m.pattern, "action": m.action or "block", "category": m.category, "degraded": False}

        keyword = self.store.match_keywords(text) if regex.ok else None
        if keyword is not None and keyword.ok:
            if keyword.value.matched:
                return {"pattern": f"keyword:{keyword.value.keyword}", "action": "block", "category": None, "degraded": False}
            return None

        failed = regex.error or (keyword.error if keyword is not None else None)
        log.warning("rule_store_degraded_sanitizer", error=failed.detail if failed else None)
        pattern = detect_injection_fallback(text)
        if pattern:
            return {"pattern": pattern, "action": "block", "category": "injection", "degraded": True}
        return {"degraded": True} if failed else None

    def sanitize(self, text: str) -> SanitizationResult:
        text = text or ""
        result = SanitizationResult(original=text, sanitized=text)

        detection = self._detect(text)
        if detection and detection.get("pattern"):
            result.blocked = True
            result.block_reason = PROMPT_INJECTION_DETECTED
            result.action = detection["action"]
            result.pattern = detection["pattern"]
            result.degraded = detection["degraded"]
            log.warning(
                "prompt_injection_detected",
                pattern=detection["pattern"],
                category=detection["category"],
                degraded=detection["degraded"],
                input=truncate_for_log(text),
            )
            return result
        result.degraded = bool(detection and detection.get("degraded"))

        cleaned = strip_markup(text)
        if cleaned != text:
            result.warnings.append(HTML_TAGS_REMOVED)
        cleaned = normalize_whitespace(cleaned)

        if not cleaned:
            result.blocked = True
            result.block_reason = EMPTY_AFTER_SANITIZATION
            result.sanitized = ""
            log.warning("empty_after_sanitization", input=truncate_for_log(text))
            return result

        result.sanitized = cleaned
        return result
