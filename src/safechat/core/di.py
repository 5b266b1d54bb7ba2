"""Bootstrap do container de DI (kink) do motor de segurança."""
from kink import di
from .settings import Settings
from .logging import configure_logging, get_logger
from .db import create_session_factory
from .llm_client import LLMClient
from .prompting import PromptBuilder
from ..connectors.classifier.moderation_api import ModerationApiClassifier
from ..domain.services.rule_store import RuleStore
from ..domain.services.sanitizer import Sanitizer
from ..domain.services.moderation import ModerationEvaluator
from ..domain.services.escalation import EscalationClassifier
from ..domain.services.pipeline import SafetyPipeline
from ..repo.audit import DecisionAuditSink
from ..repo.rules_repo import SqlRuleBackingStore

def bootstrap_di() -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    di[Settings] = settings
    di["logger"] = get_logger()
    di["session_factory"] = create_session_factory(settings.database_url)
    di["rule_backing_store"] = SqlRuleBackingStore(di["session_factory"])
    di["classifier"] = ModerationApiClassifier(settings)
    audit = DecisionAuditSink(di["session_factory"], max_pending=settings.audit_max_pending) if settings.audit_enabled else None
    if audit is not None:
        di[DecisionAuditSink] = audit
    di[PromptBuilder] = PromptBuilder()
    di[LLMClient] = LLMClient(settings, di[PromptBuilder])

    # Um único RuleStore compartilhado pelos três estágios
    store = RuleStore(di["rule_backing_store"], settings)
    di[RuleStore] = store
    di[Sanitizer] = Sanitizer(store)
    di[ModerationEvaluator] = ModerationEvaluator(store, di["classifier"], audit)
    di[EscalationClassifier] = EscalationClassifier(store)
    di[SafetyPipeline] = SafetyPipeline(
        di[Sanitizer],
        di[ModerationEvaluator],
        di[EscalationClassifier],
        audit=audit,
        generator=di[LLMClient],
    )
