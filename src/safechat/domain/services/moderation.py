
"""Avaliação de moderação: scores do classificador -> ação por categoria -> agregado.

Política: se o classificador falha (rede, timeout, quota) o avaliador FALHA ABERTO
(flagged=False, should_block=False) e loga erro. Se o rule store está degradado,
cada categoria usa o flag binário do próprio classificador com ação `block`.
"""
from __future__ import annotations
from kink import di
from ...core.logging import get_logger, truncate_for_log
from ...core.result import DependencyError, Result
from ...ports.interfaces import AuditSink, ClassifierOutput, ContentClassifier
from ..defaults import MODERATION_CATEGORIES
from ..verdicts import ModerationResult
from .rule_store import RuleStore, resolve_threshold

log = get_logger()

class ModerationEvaluator:
    def __init__(self, store: RuleStore | None = None, classifier: ContentClassifier | None = None, audit: AuditSink | None = None):
        self.store = store or di[RuleStore]
        self.classifier = classifier or di["classifier"]
        self.audit = audit

    def _classify(self, text: str) -> Result[ClassifierOutput]:
        try:
            return Result.success(self.classifier.classify(text))
        except Exception as exc:
            return Result.failure(DependencyError.from_exception("classifier", exc))

    def moderate(self, text: str) -> ModerationResult:
        res = self._classify(text)
        if not res.ok:
            log.error("classifier_unavailable", error=res.error.detail)
            return ModerationResult(error=res.error.detail)

        out = res.value
        scores: dict[str, float] = {}
        flagged: list[str] = []
        actions: dict[str, str] = {}
        # uma leitura de limiares por mensagem
        thresholds = self.store.get_moderation_thresholds()
        degraded = thresholds.degraded
        for category in MODERATION_CATEGORIES:
            score = float(out.category_scores.get(category, 0.0))
            scores[category] = score
            if degraded:
                if out.categories.get(category):
                    flagged.append(category)
                    actions[category] = "block"
                continue
            decision = resolve_threshold(thresholds.value, category, score)
            if decision.should_act:
                flagged.append(category)
                actions[category] = decision.action
        if degraded:
            log.warning("moderation_thresholds_degraded", flagged=flagged)

        result = ModerationResult(
            flagged=out.flagged or bool(flagged),
            categories=flagged,
            category_actions=actions,
            scores=scores,
            should_block=any(a == "block" for a in actions.values()),
            should_escalate=any(a == "escalate" for a in actions.values()),
            should_flag=any(a == "flag" for a in actions.values()),
        )
        if result.flagged:
            log.info("moderation_flagged", categories=flagged, actions=actions)
        return result

    def moderate_and_log(self, text: str, message_id: str | None = None) -> ModerationResult:
        """Modera e registra no audit sink; falha de auditoria é logada e ignorada."""
        result = self.moderate(text)
        if message_id and self.audit is not None:
            try:
                self.audit.log_decision("moderation", result.model_dump(mode="json") | {"message_id": message_id}, truncate_for_log(text))
            except Exception as exc:
                log.error("moderation_audit_failed", message_id=message_id, error=str(exc))
        return result
