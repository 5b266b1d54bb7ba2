
"""Infra de logging JSON usando structlog, com trace_id contextual."""
from __future__ import annotations
import structlog
import sys
from uuid import uuid4
from contextvars import ContextVar

trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="-")

AUDIT_PREVIEW_CHARS = 100

def set_trace_id(value: str | None = None) -> str:
    """Define trace_id no contexto atual e retorna o valor definido."""
    tid = value or uuid4().hex
    trace_id_ctx.set(tid)
    return tid

def truncate_for_log(text: str | None, limit: int = AUDIT_PREVIEW_CHARS) -> str:
    """Corta o texto para auditoria. Nunca logamos a mensagem inteira."""
    return (text or "")[:limit]

def configure_logging(level: int = 20) -> None:
    """Configura structlog para JSON em stdout com trace_id injetado."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            lambda _, __, ev: {**ev, "trace_id": trace_id_ctx.get()},
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
    )

def get_logger() -> structlog.stdlib.BoundLogger:
    """Cria logger JSON com trace_id injetado automaticamente."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger()
