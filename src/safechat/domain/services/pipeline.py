
"""Orquestrador do pipeline de segurança.

Entrada: RECEIVED -> SANITIZING -> MODERATING_INPUT -> ESCALATION_CHECK -> PASSED | PASSED_FLAGGED
         (ou BLOCKED_INPUT / BLOCKED_INPUT_WITH_RESOURCES).
Saída:   MODERATING_OUTPUT -> DELIVERED | FALLBACK_OUTPUT.

Crise é o único caso em que escalar == bloquear e responder com recursos: o modelo
não é chamado. Nenhum estado compartilhado entre mensagens além do cache do RuleStore.
"""
from __future__ import annotations
import time
from kink import di
from ...core.logging import get_logger, truncate_for_log
from ...ports.interfaces import AuditSink, ReplyGenerator, Retriever
from ..responses import (
    GENERIC_ERROR_RESPONSE,
    OUTPUT_FALLBACK_RESPONSE,
    blocked_input_response,
    moderation_fallback,
)
from ..verdicts import EscalationResult, MessageOutcome, OutputResult, PipelineResult, PipelineState
from .escalation import EscalationClassifier
from .moderation import ModerationEvaluator
from .sanitizer import Sanitizer

log = get_logger()

CONTENT_MODERATION = "CONTENT_MODERATION"
OUTPUT_MODERATION = "OUTPUT_MODERATION"
CRISIS_DETECTED = "CRISIS_DETECTED"

_MODERATION_ESCALATION = {
    "crisis": ("CRISIS_DETECTED", "critical"),
    "threat": ("THREAT_DETECTED", "critical"),
    "moderation": ("MODERATION_FLAGGED", "high"),
}

class NullRetriever:
    """Retriever sem base de conhecimento: contexto vazio."""
    def retrieve(self, query: str) -> dict:
        return {"has_context": False, "documents": []}

def moderation_escalation(escalation_type: str, triggers: list[str]) -> EscalationResult:
    reason, urgency = _MODERATION_ESCALATION.get(escalation_type, _MODERATION_ESCALATION["moderation"])
    return EscalationResult(should_escalate=True, type=escalation_type, reason=reason, urgency=urgency, triggers=triggers)

class SafetyPipeline:
    def __init__(
        self,
        sanitizer: Sanitizer | None = None,
        moderation: ModerationEvaluator | None = None,
        escalation: EscalationClassifier | None = None,
        audit: AuditSink | None = None,
        retriever: Retriever | None = None,
        generator: ReplyGenerator | None = None,
    ):
        self.sanitizer = sanitizer or di[Sanitizer]
        self.moderation = moderation or di[ModerationEvaluator]
        self.escalation = escalation or di[EscalationClassifier]
        self.audit = audit
        self.retriever = retriever or NullRetriever()
        self.generator = generator

    def _audit(self, stage: str, verdict: dict, preview: str) -> None:
        """Fire-and-forget: auditoria nunca derruba o pipeline."""
        if self.audit is None:
            return
        try:
            self.audit.log_decision(stage, verdict, preview)
        except Exception as exc:
            log.error("audit_failed", stage=stage, error=str(exc))

    def _finish(self, result: PipelineResult, state: PipelineState, started: float) -> PipelineResult:
        result.state = state
        result.processing_time_ms = int((time.perf_counter() - started) * 1000)
        log.info(
            "pipeline_completed",
            state=state.value,
            input_passed=result.input_passed,
            blocked=result.blocked,
            block_reason=result.block_reason,
            escalation=result.escalation.type if result.escalation else None,
            processing_time_ms=result.processing_time_ms,
        )
        return result

    def run_pipeline(self, input_text: str) -> PipelineResult:
        """Decide sobre a mensagem de entrada: passa, bloqueia ou escala."""
        started = time.perf_counter()
        preview = truncate_for_log(input_text)
        result = PipelineResult(sanitized_input=input_text or "")

        # SANITIZING
        san = self.sanitizer.sanitize(input_text)
        self._audit(PipelineState.SANITIZING.value, san.model_dump(mode="json", exclude={"original", "sanitized"}), preview)
        if san.blocked:
            result.input_passed = False
            result.blocked = True
            result.block_reason = san.block_reason
            result.blocked_by = PipelineState.SANITIZING.value
            result.matched_pattern = san.pattern
            result.action = san.action
            result.fallback_response = blocked_input_response(san.block_reason)
            return self._finish(result, PipelineState.BLOCKED_INPUT, started)
        result.sanitized_input = san.sanitized

        # MODERATING_INPUT
        mod = self.moderation.moderate(san.sanitized)
        result.moderation = mod
        self._audit(PipelineState.MODERATING_INPUT.value, mod.model_dump(mode="json"), preview)
        if mod.should_block:
            fallback = moderation_fallback(mod.categories)
            result.input_passed = False
            result.blocked = True
            result.block_reason = CONTENT_MODERATION
            result.blocked_by = PipelineState.MODERATING_INPUT.value
            result.action = "block"
            result.fallback_response = fallback["message"]
            result.resources = fallback["resources"]
            if fallback["should_escalate"]:
                result.escalation = moderation_escalation(fallback["escalation_type"], [f"moderation:{c}" for c in mod.categories])
            return self._finish(result, PipelineState.BLOCKED_INPUT, started)

        # ESCALATION_CHECK
        esc = self.escalation.analyze(san.sanitized)
        if not esc.should_escalate and mod.should_escalate:
            escalated = [c for c, a in mod.category_actions.items() if a == "escalate"]
            esc = moderation_escalation("moderation", esc.triggers + [f"moderation:{c}" for c in escalated])
        self._audit(PipelineState.ESCALATION_CHECK.value, esc.model_dump(mode="json"), preview)
        if not esc.should_escalate:
            return self._finish(result, PipelineState.PASSED, started)

        result.escalation = esc
        response = self.escalation.response(esc)
        if esc.type == "crisis":
            result.input_passed = False
            result.blocked = True
            result.block_reason = CRISIS_DETECTED
            result.blocked_by = PipelineState.ESCALATION_CHECK.value
            result.action = "escalate"
            result.fallback_response = response["message"]
            result.resources = response["resources"]
            return self._finish(result, PipelineState.BLOCKED_INPUT_WITH_RESOURCES, started)
        result.escalation_message = response["message"]
        return self._finish(result, PipelineState.PASSED_FLAGGED, started)

    def evaluate_output(self, generated_text: str) -> OutputResult:
        """Modera a resposta gerada antes da entrega."""
        mod = self.moderation.moderate(generated_text)
        self._audit(PipelineState.MODERATING_OUTPUT.value, mod.model_dump(mode="json"), truncate_for_log(generated_text))
        if mod.should_block:
            log.warning("output_blocked", categories=mod.categories)
            return OutputResult(
                passed=False,
                final_text=OUTPUT_FALLBACK_RESPONSE,
                blocked=True,
                block_reason=OUTPUT_MODERATION,
                blocked_by=PipelineState.MODERATING_OUTPUT.value,
                moderation=mod,
                state=PipelineState.FALLBACK_OUTPUT,
            )
        return OutputResult(final_text=generated_text, moderation=mod, state=PipelineState.DELIVERED)

    def respond(self, text: str, history: list[dict] | None = None) -> MessageOutcome:
        """Fluxo completo: entrada -> contexto -> geração -> moderação da saída."""
        decision = self.run_pipeline(text)
        if not decision.input_passed:
            return MessageOutcome(input=decision, reply=decision.fallback_response or GENERIC_ERROR_RESPONSE, state=decision.state)

        try:
            context = self.retriever.retrieve(decision.sanitized_input)
        except Exception as exc:
            log.error("retrieval_failed", error=str(exc))
            context = {"has_context": False, "documents": []}

        messages = list(history or []) + [{"role": "user", "content": decision.sanitized_input}]
        reply = None
        if self.generator is None:
            log.error("reply_generation_failed", error="reply generator not configured")
        else:
            try:
                reply = self.generator.generate(messages, context)
            except Exception as exc:
                log.error("reply_generation_failed", error=str(exc))
        if reply is None:
            return MessageOutcome(input=decision, reply=GENERIC_ERROR_RESPONSE, state=PipelineState.FALLBACK_OUTPUT, context=context)

        output = self.evaluate_output(reply)
        return MessageOutcome(input=decision, output=output, reply=output.final_text, state=output.state, context=context)
