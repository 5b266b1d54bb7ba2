"""Fakes compartilhados: backing store, classificador, relógio, audit sink e gerador."""
from __future__ import annotations

import time
from collections import Counter

import pytest

from safechat.core.db import create_session_factory
from safechat.core.result import DependencyUnavailable
from safechat.core.settings import Settings
from safechat.domain.defaults import DEFAULT_ESCALATION_KEYWORDS, DEFAULT_INJECTION_PATTERNS, escalation_category
from safechat.domain.services.escalation import EscalationClassifier
from safechat.domain.services.moderation import ModerationEvaluator
from safechat.domain.services.pipeline import SafetyPipeline
from safechat.domain.services.rule_store import RuleStore
from safechat.domain.services.sanitizer import Sanitizer
from safechat.ports.interfaces import ClassifierOutput, EscalationKeywordSetDTO, ModerationThresholdDTO, SafetyRuleDTO
from safechat.repo.models import Base


class FakeBackingStore:
    """Backing store em memória com contadores de chamada e chave de falha."""

    def __init__(self):
        self.patterns = [
            SafetyRuleDTO(id=f"p{i}", value=p["value"], action=p["action"], category=p["category"])
            for i, p in enumerate(DEFAULT_INJECTION_PATTERNS)
        ]
        self.keywords: list[str] = []
        self.escalation_sets = [
            EscalationKeywordSetDTO(category=c, keywords=list(kws), priority=escalation_category(c).priority)
            for c, kws in DEFAULT_ESCALATION_KEYWORDS.items()
        ]
        self.thresholds = [
            ModerationThresholdDTO(category="self-harm", threshold=0.5, action="escalate"),
            ModerationThresholdDTO(category="hate", threshold=0.7, action="block"),
            ModerationThresholdDTO(category="violence", threshold=0.8, action="flag"),
        ]
        self.settings: dict = {}
        self.calls: Counter = Counter()
        self.fail = False
        # subtipos que falham isoladamente: regex, keywords, escalation, thresholds, setting
        self.failing: set[str] = set()
        self.delay_s = 0.0

    def _enter(self, name: str) -> None:
        self.calls[name] += 1
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.fail or name in self.failing:
            raise DependencyUnavailable("rule_store", "connection refused")

    def list_active_regex_patterns(self):
        self._enter("regex")
        return list(self.patterns)

    def list_active_blocked_keywords(self):
        self._enter("keywords")
        return list(self.keywords)

    def list_active_escalation_keyword_sets(self):
        self._enter("escalation")
        return list(self.escalation_sets)

    def list_active_moderation_thresholds(self):
        self._enter("thresholds")
        return list(self.thresholds)

    def get_system_setting(self, key):
        self._enter("setting")
        return self.settings.get(key)


class FakeClassifier:
    def __init__(self, scores: dict | None = None, flagged: set | None = None):
        self.scores = scores or {}
        self.flagged = flagged or set()
        self.fail = False
        self.calls: list[str] = []

    def classify(self, text: str) -> ClassifierOutput:
        self.calls.append(text)
        if self.fail:
            raise DependencyUnavailable("classifier", "quota exceeded")
        return ClassifierOutput(
            flagged=bool(self.flagged),
            categories={c: c in self.flagged for c in set(self.scores) | self.flagged},
            category_scores=dict(self.scores),
        )


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ListAuditSink:
    def __init__(self):
        self.records: list[tuple[str, dict, str]] = []

    def log_decision(self, stage, verdict, truncated_input):
        self.records.append((stage, verdict, truncated_input))

    def stages(self) -> list[str]:
        return [r[0] for r in self.records]


class FakeGenerator:
    def __init__(self, reply: str = "You can reset your password from the account settings page."):
        self.reply = reply
        self.fail = False
        self.calls: list[tuple[list, dict]] = []

    def generate(self, history, context):
        self.calls.append((history, context))
        if self.fail:
            raise DependencyUnavailable("reply_generator", "gateway down")
        return self.reply


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        admin_key="secret",
        rule_cache_ttl_s=300,
        store_timeout_s=0.5,
        store_workers=2,
        audit_enabled=False,
    )


@pytest.fixture
def backing():
    return FakeBackingStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(backing, settings, clock):
    rs = RuleStore(backing, settings, clock=clock)
    yield rs
    rs.close()


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def audit():
    return ListAuditSink()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def pipeline(store, classifier, audit, generator):
    return SafetyPipeline(
        Sanitizer(store),
        ModerationEvaluator(store, classifier, audit),
        EscalationClassifier(store),
        audit=audit,
        generator=generator,
    )


@pytest.fixture
def session_factory():
    factory = create_session_factory("sqlite://")
    engine = factory.kw["bind"]
    Base.metadata.create_all(engine)
    yield factory
    engine.dispose()
