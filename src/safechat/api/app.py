"""API Flask: health check, simulação do pipeline e superfície administrativa das regras."""
from __future__ import annotations
import hmac
from functools import wraps
from flask import Flask, request, jsonify
from kink import di
from werkzeug.exceptions import HTTPException
from ..core.di import bootstrap_di
from ..core.logging import set_trace_id, get_logger, truncate_for_log
from ..core.result import RuleValidationError
from ..core.settings import Settings
from ..domain.responses import GENERIC_ERROR_RESPONSE
from ..domain.services.pipeline import SafetyPipeline
from ..domain.services.rule_store import RuleStore

log = get_logger()

def create_app(pipeline: SafetyPipeline | None = None, store: RuleStore | None = None, rules=None, settings: Settings | None = None) -> Flask:
    """Monta o app. Sem colaboradores explícitos, usa o container (bootstrap_di)."""
    if pipeline is None:
        bootstrap_di()
    pipeline = pipeline or di[SafetyPipeline]
    store = store or di[RuleStore]
    rules = rules or di["rule_backing_store"]
    settings = settings or di[Settings]

    app = Flask(__name__)

    def admin_required(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            key = request.headers.get("X-Admin-Key") or ""
            if not settings.admin_key or not hmac.compare_digest(key, settings.admin_key):
                log.warning("admin_unauthorized", path=request.path)
                return {"error": "unauthorized"}, 401
            return fn(*args, **kwargs)
        return wrapper

    @app.before_request
    def bind_trace_id():
        set_trace_id(request.headers.get("X-Trace-Id"))

    @app.errorhandler(RuleValidationError)
    def invalid_rule(exc: RuleValidationError):
        return {"error": str(exc)}, 400

    @app.errorhandler(Exception)
    def unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        log.exception("unhandled_error", path=request.path, error=str(exc))
        return {"error": "internal_error", "message": GENERIC_ERROR_RESPONSE}, 500

    @app.get("/healthz")
    def healthz():
        """Health check básico."""
        return {"ok": True}

    @app.post("/simulate")
    def simulate():
        """Roda o fluxo completo para uma mensagem.

        Corpo esperado:
        { "text": "How do I reset my password?", "history": [{"role": "user", "content": "..."}] }
        """
        body = request.get_json(force=True, silent=True) or {}
        text = body.get("text") or ""
        history = body.get("history") or []
        log.info("simulate_in", text=truncate_for_log(text), history_len=len(history))
        outcome = pipeline.respond(text, history)
        return jsonify(outcome.model_dump(mode="json"))

    # ---------- Admin ----------
    @app.get("/admin/rules/status")
    @admin_required
    def rules_status():
        return store.get_status()

    @app.post("/admin/rules/reload")
    @admin_required
    def rules_reload():
        store.invalidate()
        return {"ok": True, "status": store.get_status()}

    @app.get("/admin/rules")
    @admin_required
    def rules_list():
        enabled = request.args.get("enabled")
        rows = rules.list_rules(
            rule_type=request.args.get("type"),
            category=request.args.get("category"),
            enabled=None if enabled is None else enabled.lower() == "true",
        )
        return jsonify([r.model_dump() for r in rows])

    @app.post("/admin/rules")
    @admin_required
    def rules_create():
        body = request.get_json(force=True, silent=True) or {}
        rule = rules.create_rule(body, created_by=request.headers.get("X-Admin-User"))
        store.invalidate()
        return rule.model_dump(), 201

    @app.patch("/admin/rules/<rule_id>")
    @admin_required
    def rules_update(rule_id: str):
        body = request.get_json(force=True, silent=True) or {}
        rule = rules.update_rule(rule_id, body)
        if rule is None:
            return {"error": "rule not found"}, 404
        store.invalidate()
        return rule.model_dump()

    @app.delete("/admin/rules/<rule_id>")
    @admin_required
    def rules_delete(rule_id: str):
        if not rules.delete_rule(rule_id):
            return {"error": "rule not found"}, 404
        store.invalidate()
        return {"ok": True}

    @app.put("/admin/moderation/<path:category>")
    @admin_required
    def moderation_upsert(category: str):
        body = request.get_json(force=True, silent=True) or {}
        try:
            threshold = float(body.get("threshold", 0.7))
        except (TypeError, ValueError) as exc:
            raise RuleValidationError("threshold must be a number between 0 and 1") from exc
        if not 0.0 <= threshold <= 1.0:
            raise RuleValidationError("threshold must be a number between 0 and 1")
        dto = rules.upsert_moderation_threshold(category, threshold, body.get("action", "block"), body.get("enabled", True) is not False)
        store.invalidate()
        return dto.model_dump()

    @app.put("/admin/escalation/<category>")
    @admin_required
    def escalation_upsert(category: str):
        body = request.get_json(force=True, silent=True) or {}
        keywords = body.get("keywords")
        if not isinstance(keywords, list):
            raise RuleValidationError("keywords must be a list of strings")
        dto = rules.upsert_escalation_set(
            category,
            [str(k) for k in keywords],
            int(body.get("priority") or 0),
            body.get("response_template"),
            body.get("enabled", True) is not False,
        )
        store.invalidate()
        return dto.model_dump()

    @app.put("/admin/settings/cache-ttl")
    @admin_required
    def cache_ttl_update():
        body = request.get_json(force=True, silent=True) or {}
        ms = body.get("ms")
        if not isinstance(ms, int) or isinstance(ms, bool) or ms <= 0:
            raise RuleValidationError("ms must be a positive integer")
        rules.upsert_system_setting("cache_ttl", {"ms": ms})
        store.invalidate()
        return {"ok": True, "ms": ms}

    @app.post("/admin/rules/seed")
    @admin_required
    def rules_seed():
        counts = rules.seed_defaults()
        store.invalidate()
        return counts

    return app

def main() -> None:
    app = create_app()
    s = di[Settings]
    app.run(host=s.host, port=s.port, debug=s.flask_debug)

if __name__ == "__main__":
    main()
