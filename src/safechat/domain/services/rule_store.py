
"""Rule store: cache com TTL das regras administráveis, com fallback embutido.

- Quatro subtipos: padrões regex, keywords bloqueadas, keywords de escalonamento, limiares de moderação.
- Leitura no caminho comum não toca o banco (entrada válida = agora < expires_at).
- Refresh busca fora do lock e troca o dicionário inteiro (refresh-then-swap); leitores
  veem o valor antigo ou o novo, nunca um parcial.
- Falha/timeout do backing store devolve `Result` degradado com o fallback embutido,
  que NÃO é cacheado: a próxima leitura tenta o banco de novo.
- `invalidate()` limpa tudo e avança a geração; refresh iniciado antes da invalidação
  não grava no cache.
"""
from __future__ import annotations
import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, TypeVar
from kink import di
from ...core.settings import Settings
from ...core.logging import get_logger
from ...core.result import DependencyError, Result
from ...ports.interfaces import EscalationKeywordSetDTO, ModerationThresholdDTO, RuleBackingStore, SafetyRuleDTO
from ..defaults import (
    DEFAULT_BLOCKED_KEYWORDS,
    DEFAULT_ESCALATION_KEYWORDS,
    DEFAULT_INJECTION_PATTERNS,
    DEFAULT_MODERATION_THRESHOLDS,
    UNKNOWN_CATEGORY_ACTION,
    UNKNOWN_CATEGORY_THRESHOLD,
)
from ..verdicts import (
    CompiledPattern,
    EscalationKeywordHit,
    EscalationMatches,
    KeywordMatch,
    ModerationAction,
    RegexMatch,
)

log = get_logger()

T = TypeVar("T")

REGEX_PATTERNS = "regex_patterns"
BLOCKED_KEYWORDS = "blocked_keywords"
ESCALATION_SETS = "escalation_keywords"
MODERATION_THRESHOLDS = "moderation_thresholds"
CACHE_KEYS = (REGEX_PATTERNS, BLOCKED_KEYWORDS, ESCALATION_SETS, MODERATION_THRESHOLDS)

CACHE_TTL_SETTING = "cache_ttl"

@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    expires_at: float

def compile_patterns(rows: List[SafetyRuleDTO]) -> List[CompiledPattern]:
    """Compila cada `value` como regex case-insensitive; descarta e loga as inválidas."""
    compiled: List[CompiledPattern] = []
    for row in rows:
        try:
            rx = re.compile(row.value, re.IGNORECASE)
        except re.error as exc:
            log.warning("invalid_regex_pattern", pattern=row.value, rule_id=row.id, error=str(exc))
            continue
        compiled.append(CompiledPattern(regex=rx, action=row.action, category=row.category, source=row.value))
    return compiled

def _default_patterns() -> List[CompiledPattern]:
    return [
        CompiledPattern(regex=re.compile(p["value"], re.IGNORECASE), action=p["action"], category=p["category"], source=p["value"])
        for p in DEFAULT_INJECTION_PATTERNS
    ]

def _default_escalation_sets() -> List[EscalationKeywordSetDTO]:
    return [EscalationKeywordSetDTO(category=c, keywords=list(kws)) for c, kws in DEFAULT_ESCALATION_KEYWORDS.items()]

def _default_thresholds() -> Dict[str, ModerationThresholdDTO]:
    return {c: ModerationThresholdDTO(category=c, **cfg) for c, cfg in DEFAULT_MODERATION_THRESHOLDS.items()}

def resolve_threshold(thresholds: Dict[str, ModerationThresholdDTO], category: str, score: float) -> ModerationAction:
    """Ação para um score; categoria sem limiar usa 0.7/flag."""
    setting = thresholds.get(category)
    if setting is None:
        return ModerationAction(should_act=score >= UNKNOWN_CATEGORY_THRESHOLD, action=UNKNOWN_CATEGORY_ACTION, threshold=UNKNOWN_CATEGORY_THRESHOLD)
    return ModerationAction(should_act=score >= setting.threshold, action=setting.action, threshold=setting.threshold)

class RuleStore:
    """Cache de regras injetado explicitamente no pipeline (sem singleton global)."""

    def __init__(
        self,
        backing: RuleBackingStore | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        executor: ThreadPoolExecutor | None = None,
    ):
        self.settings = settings or di[Settings]
        self.backing = backing or di["rule_backing_store"]
        self._clock = clock
        self._timeout_s = self.settings.store_timeout_s
        self._default_ttl_s = float(self.settings.rule_cache_ttl_s)
        self._ttl_s = self._default_ttl_s
        self._executor = executor or ThreadPoolExecutor(max_workers=self.settings.store_workers, thread_name_prefix="rule-store")
        self._slots = threading.BoundedSemaphore(self.settings.store_workers)
        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}
        self._generation = 0
        self.using_fallback = False

    # ---------- Infra ----------
    def _call(self, name: str, fn: Callable[..., Any], *args: Any) -> Result[Any]:
        """Executa chamada ao backing store com timeout; nunca levanta.

        No máximo `store_workers` chamadas em voo: com todos os slots ocupados por
        chamadas lentas a leitura falha na hora em vez de enfileirar.
        """
        if not self._slots.acquire(blocking=False):
            log.warning("rule_store_saturated", subtype=name, workers=self.settings.store_workers)
            return Result.failure(DependencyError("rule_store", f"{name} skipped: backing store saturated"))
        try:
            future = self._executor.submit(fn, *args)
        except Exception as exc:
            self._slots.release()
            return Result.failure(DependencyError.from_exception("rule_store", exc))
        future.add_done_callback(lambda _: self._slots.release())
        try:
            return Result.success(future.result(timeout=self._timeout_s))
        except FuturesTimeout:
            future.cancel()
            return Result.failure(DependencyError("rule_store", f"{name} timed out after {self._timeout_s}s"))
        except Exception as exc:
            return Result.failure(DependencyError.from_exception("rule_store", exc))

    def _is_valid(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() < entry.expires_at

    def _resolve_ttl_s(self) -> float:
        """TTL vindo do system setting `cache_ttl` ({"ms": int}); senão o padrão."""
        res = self._call(CACHE_TTL_SETTING, self.backing.get_system_setting, CACHE_TTL_SETTING)
        value = res.value if res.ok else None
        if isinstance(value, dict):
            ms = value.get("ms")
            if isinstance(ms, (int, float)) and not isinstance(ms, bool) and ms > 0:
                return ms / 1000.0
        return self._default_ttl_s

    def _get(self, key: str, loader: Callable[[], T], fallback: Callable[[], T]) -> Result[T]:
        entry = self._entries.get(key)
        if entry is not None and self._clock() < entry.expires_at:
            return Result.success(entry.value)

        generation = self._generation
        res = self._call(key, loader)
        if not res.ok:
            self.using_fallback = True
            log.error("rule_store_fallback", subtype=key, error=res.error.detail)
            return Result.fallback(fallback(), res.error)

        ttl_s = self._resolve_ttl_s()
        with self._lock:
            self._ttl_s = ttl_s
            if self._generation == generation:
                self._entries = {**self._entries, key: CacheEntry(value=res.value, expires_at=self._clock() + ttl_s)}
            self.using_fallback = False
        log.info("rule_cache_refreshed", subtype=key, ttl_s=ttl_s)
        return Result.success(res.value)

    def invalidate(self) -> None:
        """Limpa todas as entradas; chamado pela superfície administrativa após qualquer edição."""
        with self._lock:
            self._entries = {}
            self._generation += 1
        log.info("rule_cache_invalidated", generation=self._generation)

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    # ---------- Subtipos ----------
    def get_regex_patterns(self) -> Result[List[CompiledPattern]]:
        return self._get(REGEX_PATTERNS, lambda: compile_patterns(self.backing.list_active_regex_patterns()), _default_patterns)

    def get_blocked_keywords(self) -> Result[List[str]]:
        return self._get(BLOCKED_KEYWORDS, lambda: list(self.backing.list_active_blocked_keywords()), lambda: list(DEFAULT_BLOCKED_KEYWORDS))

    def get_escalation_sets(self) -> Result[List[EscalationKeywordSetDTO]]:
        return self._get(ESCALATION_SETS, lambda: list(self.backing.list_active_escalation_keyword_sets()), _default_escalation_sets)

    def get_escalation_keywords(self) -> Result[Dict[str, List[str]]]:
        """Mapa categoria -> keywords, na ordem do backing store."""
        res = self.get_escalation_sets()
        keyword_map = {s.category: list(s.keywords or []) for s in res.value}
        return Result(value=keyword_map, error=res.error)

    def get_response_templates(self) -> Result[Dict[str, str]]:
        """Templates de resposta configurados por categoria (apenas os preenchidos)."""
        res = self.get_escalation_sets()
        templates = {s.category: s.response_template for s in res.value if s.response_template}
        return Result(value=templates, error=res.error)

    def get_moderation_thresholds(self) -> Result[Dict[str, ModerationThresholdDTO]]:
        def load() -> Dict[str, ModerationThresholdDTO]:
            return {row.category: row for row in self.backing.list_active_moderation_thresholds()}
        return self._get(MODERATION_THRESHOLDS, load, _default_thresholds)

    # ---------- Matching ----------
    def match_regex(self, text: str) -> Result[RegexMatch]:
        """Primeiro padrão (ordem do store) que casa; sem pontuação."""
        res = self.get_regex_patterns()
        match = RegexMatch()
        for p in res.value:
            if p.regex.search(text):
                match = RegexMatch(matched=True, pattern=p.source, action=p.action, category=p.category)
                break
        return Result(value=match, error=res.error)

    def match_keywords(self, text: str) -> Result[KeywordMatch]:
        res = self.get_blocked_keywords()
        lower = text.lower()
        match = KeywordMatch()
        for kw in res.value:
            if kw and kw.lower() in lower:
                match = KeywordMatch(matched=True, keyword=kw)
                break
        return Result(value=match, error=res.error)

    def match_escalation_keywords(self, text: str) -> Result[EscalationMatches]:
        """Todos os pares (categoria, keyword) que casam; quem chama resolve a prioridade."""
        res = self.get_escalation_keywords()
        lower = text.lower()
        hits = [
            EscalationKeywordHit(category=category, keyword=kw)
            for category, keywords in res.value.items()
            for kw in keywords
            if kw and kw.lower() in lower
        ]
        return Result(value=EscalationMatches(matched=bool(hits), matches=hits), error=res.error)

    def resolve_moderation_action(self, category: str, score: float) -> Result[ModerationAction]:
        res = self.get_moderation_thresholds()
        return Result(value=resolve_threshold(res.value, category, score), error=res.error)

    # ---------- Diagnóstico ----------
    def get_status(self) -> dict:
        return {
            "using_fallback": self.using_fallback,
            "cache_status": {key: self._is_valid(key) for key in CACHE_KEYS},
            "cache_ttl_s": self._ttl_s,
            "generation": self._generation,
        }
