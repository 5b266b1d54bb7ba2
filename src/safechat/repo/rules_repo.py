
"""Repositório das regras de segurança (backing store do RuleStore) + escrita administrativa.

Leituras devolvem apenas linhas habilitadas, em `priority DESC`. Escritas validam
tipo/ação/valor e NÃO invalidam o cache sozinhas: quem chama (superfície
administrativa) deve chamar RuleStore.invalidate().
"""
from __future__ import annotations
import re
from typing import Any
from sqlalchemy import select, delete
from kink import di
from ..core.logging import get_logger
from ..core.result import RuleValidationError
from ..domain.defaults import DEFAULT_CACHE_TTL_MS
from ..ports.interfaces import (
    RULE_ACTIONS,
    RULE_TYPES,
    EscalationKeywordSetDTO,
    ModerationThresholdDTO,
    SafetyRuleDTO,
)
from .models import EscalationSetting, ModerationSetting, SafetyRule, SystemSetting
from .seed import SEED_ESCALATION_SETS, SEED_MODERATION_THRESHOLDS, SEED_REGEX_PATTERNS

log = get_logger()

def _rule_dto(r: SafetyRule) -> SafetyRuleDTO:
    return SafetyRuleDTO(
        id=r.id, rule_type=r.rule_type, category=r.category, value=r.value, action=r.action,
        priority=r.priority, enabled=r.enabled, description=r.description,
    )

def validate_rule(data: dict, is_update: bool = False) -> None:
    """Valida tipo de regra, ação, valor não vazio e compilação de regex."""
    rule_type = data.get("rule_type")
    value = data.get("value")
    action = data.get("action")
    if not is_update or rule_type is not None:
        if rule_type not in RULE_TYPES:
            raise RuleValidationError(f"invalid rule type; must be one of: {', '.join(RULE_TYPES)}")
    if not is_update or value is not None:
        if not value or not str(value).strip():
            raise RuleValidationError("rule value is required")
    if action is not None and action not in RULE_ACTIONS:
        raise RuleValidationError(f"invalid action; must be one of: {', '.join(RULE_ACTIONS)}")
    if rule_type == "regex_pattern" and value:
        try:
            re.compile(value, re.IGNORECASE)
        except re.error as exc:
            raise RuleValidationError(f"invalid regex pattern: {exc}") from exc

class SqlRuleBackingStore:
    """Implementação SQLAlchemy do RuleBackingStore."""
    def __init__(self, session_factory=None):
        self.Session = session_factory or di["session_factory"]

    # ---------- Leituras (pipeline) ----------
    def list_active_regex_patterns(self) -> list[SafetyRuleDTO]:
        with self.Session() as s:
            rows = s.execute(
                select(SafetyRule)
                .where(SafetyRule.rule_type == "regex_pattern", SafetyRule.enabled.is_(True))
                .order_by(SafetyRule.priority.desc(), SafetyRule.created_at.asc())
            ).scalars().all()
            return [_rule_dto(r) for r in rows]

    def list_active_blocked_keywords(self) -> list[str]:
        with self.Session() as s:
            return list(s.execute(
                select(SafetyRule.value)
                .where(SafetyRule.rule_type == "blocked_keyword", SafetyRule.enabled.is_(True))
                .order_by(SafetyRule.priority.desc(), SafetyRule.created_at.asc())
            ).scalars().all())

    def list_active_escalation_keyword_sets(self) -> list[EscalationKeywordSetDTO]:
        with self.Session() as s:
            rows = s.execute(
                select(EscalationSetting)
                .where(EscalationSetting.enabled.is_(True))
                .order_by(EscalationSetting.priority.desc(), EscalationSetting.category)
            ).scalars().all()
            return [
                EscalationKeywordSetDTO(category=r.category, keywords=list(r.keywords or []), priority=r.priority, response_template=r.response_template)
                for r in rows
            ]

    def list_active_moderation_thresholds(self) -> list[ModerationThresholdDTO]:
        with self.Session() as s:
            rows = s.execute(select(ModerationSetting).where(ModerationSetting.enabled.is_(True))).scalars().all()
            return [ModerationThresholdDTO(category=r.category, threshold=float(r.threshold), action=r.action) for r in rows]

    def get_system_setting(self, key: str) -> Any:
        with self.Session() as s:
            row = s.get(SystemSetting, key)
            return row.value if row else None

    # ---------- Escritas (superfície administrativa) ----------
    def list_rules(self, rule_type: str | None = None, category: str | None = None, enabled: bool | None = None) -> list[SafetyRuleDTO]:
        q = select(SafetyRule)
        if rule_type:
            q = q.where(SafetyRule.rule_type == rule_type)
        if category:
            q = q.where(SafetyRule.category == category)
        if enabled is not None:
            q = q.where(SafetyRule.enabled.is_(enabled))
        with self.Session() as s:
            rows = s.execute(q.order_by(SafetyRule.priority.desc(), SafetyRule.created_at.desc())).scalars().all()
            return [_rule_dto(r) for r in rows]

    def create_rule(self, data: dict, created_by: str | None = None) -> SafetyRuleDTO:
        validate_rule(data)
        with self.Session() as s, s.begin():
            rule = SafetyRule(
                rule_type=data["rule_type"],
                category=data.get("category"),
                value=data["value"],
                action=data.get("action") or "block",
                priority=data.get("priority") or 0,
                enabled=data.get("enabled", True) is not False,
                description=data.get("description"),
                created_by=created_by,
            )
            s.add(rule)
            s.flush()
            dto = _rule_dto(rule)
        log.info("rule_created", rule_id=dto.id, rule_type=dto.rule_type)
        return dto

    def update_rule(self, rule_id: str, data: dict) -> SafetyRuleDTO | None:
        """Atualização parcial: campos ausentes (None) mantêm o valor atual."""
        with self.Session() as s, s.begin():
            rule = s.get(SafetyRule, rule_id)
            if rule is None:
                return None
            merged = {"rule_type": rule.rule_type, "value": rule.value} | {k: v for k, v in data.items() if v is not None}
            validate_rule(merged, is_update=True)
            for field in ("rule_type", "category", "value", "action", "priority", "enabled", "description"):
                if data.get(field) is not None:
                    setattr(rule, field, data[field])
            s.flush()
            dto = _rule_dto(rule)
        log.info("rule_updated", rule_id=rule_id)
        return dto

    def delete_rule(self, rule_id: str) -> bool:
        with self.Session() as s, s.begin():
            deleted = s.execute(delete(SafetyRule).where(SafetyRule.id == rule_id)).rowcount
        log.info("rule_deleted", rule_id=rule_id, deleted=bool(deleted))
        return bool(deleted)

    def upsert_moderation_threshold(self, category: str, threshold: float = 0.7, action: str = "block", enabled: bool = True) -> ModerationThresholdDTO:
        dto = ModerationThresholdDTO(category=category, threshold=threshold, action=action)
        if action not in RULE_ACTIONS:
            raise RuleValidationError(f"invalid action; must be one of: {', '.join(RULE_ACTIONS)}")
        with self.Session() as s, s.begin():
            row = s.execute(select(ModerationSetting).where(ModerationSetting.category == category)).scalars().first()
            if row is None:
                row = ModerationSetting(category=category)
                s.add(row)
            row.threshold = dto.threshold
            row.action = action
            row.enabled = enabled
        log.info("moderation_threshold_upserted", category=category, threshold=threshold, action=action)
        return dto

    def upsert_escalation_set(self, category: str, keywords: list[str], priority: int = 0, response_template: str | None = None, enabled: bool = True) -> EscalationKeywordSetDTO:
        cleaned = [k.strip() for k in keywords if k and k.strip()]
        with self.Session() as s, s.begin():
            row = s.execute(select(EscalationSetting).where(EscalationSetting.category == category)).scalars().first()
            if row is None:
                row = EscalationSetting(category=category)
                s.add(row)
            row.keywords = cleaned
            row.priority = priority
            row.response_template = response_template
            row.enabled = enabled
        log.info("escalation_set_upserted", category=category, keywords=len(cleaned))
        return EscalationKeywordSetDTO(category=category, keywords=cleaned, priority=priority, response_template=response_template)

    def upsert_system_setting(self, key: str, value: dict, description: str | None = None) -> None:
        with self.Session() as s, s.begin():
            row = s.get(SystemSetting, key)
            if row is None:
                s.add(SystemSetting(key=key, value=value, description=description))
            else:
                row.value = value
                if description is not None:
                    row.description = description
        log.info("system_setting_upserted", key=key)

    def seed_defaults(self) -> dict:
        """Popula o banco com as regras padrão (idempotente por valor/categoria)."""
        existing = {r.value for r in self.list_rules(rule_type="regex_pattern")}
        patterns = 0
        for p in SEED_REGEX_PATTERNS:
            if p["value"] in existing:
                continue
            self.create_rule({"rule_type": "regex_pattern", "action": "block", "priority": 10, **p}, created_by="system_seed")
            patterns += 1
        for es in SEED_ESCALATION_SETS:
            self.upsert_escalation_set(**es)
        for mt in SEED_MODERATION_THRESHOLDS:
            self.upsert_moderation_threshold(**mt)
        self.upsert_system_setting("cache_ttl", {"ms": DEFAULT_CACHE_TTL_MS}, "Rule cache time-to-live in milliseconds")
        counts = {"regex_patterns": patterns, "escalation_sets": len(SEED_ESCALATION_SETS), "moderation_thresholds": len(SEED_MODERATION_THRESHOLDS)}
        log.info("rules_seeded", **counts)
        return counts
