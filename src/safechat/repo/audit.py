"""Audit sink: grava cada decisão do pipeline em `safety_decisions` fora do caminho da mensagem."""
from __future__ import annotations
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from kink import di
from ..core.logging import get_logger, trace_id_ctx, truncate_for_log
from .models import SafetyDecision

log = get_logger()

class DecisionAuditSink:
    """Fire-and-forget: `log_decision` agenda o insert e retorna na hora.

    Com `max_pending` inserts na fila, novas decisões são descartadas com warning.
    """
    def __init__(self, session_factory=None, executor: ThreadPoolExecutor | None = None, max_pending: int = 1000):
        self.Session = session_factory or di["session_factory"]
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="audit")
        self.max_pending = max_pending
        self._pending = threading.BoundedSemaphore(max_pending)

    def _insert(self, stage: str, verdict: dict, preview: str, trace_id: str) -> None:
        try:
            with self.Session() as s, s.begin():
                s.add(SafetyDecision(stage=stage, verdict=verdict, input_preview=preview, trace_id=trace_id))
        except Exception as exc:
            log.error("audit_insert_failed", stage=stage, error=str(exc))

    def log_decision(self, stage: str, verdict: dict, truncated_input: str) -> Future | None:
        if not self._pending.acquire(blocking=False):
            log.warning("audit_dropped", stage=stage, max_pending=self.max_pending)
            return None
        # trace_id lido aqui: a thread do executor não herda o ContextVar
        try:
            future = self._executor.submit(self._insert, stage, verdict, truncate_for_log(truncated_input), trace_id_ctx.get())
        except RuntimeError as exc:
            self._pending.release()
            log.error("audit_submit_failed", stage=stage, error=str(exc))
            return None
        future.add_done_callback(lambda _: self._pending.release())
        return future

    def close(self) -> None:
        self._executor.shutdown(wait=True)
