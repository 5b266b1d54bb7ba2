
"""Respostas ao usuário para entradas bloqueadas, moderação, escalonamento e saída.

Mensagens são templates Jinja2. Não revelam quais padrões dispararam o bloqueio.
Template de escalonamento configurado pelo admin (escalation_settings.response_template)
tem precedência sobre o padrão.
"""
from __future__ import annotations
from typing import Any, Dict, List
from jinja2 import Environment, BaseLoader, StrictUndefined, TemplateError
from ..core.logging import get_logger

log = get_logger()

_env = Environment(loader=BaseLoader(), undefined=StrictUndefined, trim_blocks=True, lstrip_blocks=True)

CRISIS_RESOURCES: List[Dict[str, str]] = [
    {"name": "National Suicide Prevention Lifeline", "contact": "988 (call or text)"},
    {"name": "Crisis Text Line", "contact": "Text HOME to 741741"},
    {"name": "International Association for Suicide Prevention", "url": "https://www.iasp.info/resources/Crisis_Centres/"},
]

SELF_HARM_CATEGORIES = {"self-harm", "self-harm/intent", "self-harm/instructions"}
THREAT_CATEGORIES = {"violence", "violence/graphic", "harassment/threatening", "hate/threatening", "illicit", "illicit/violent"}

GENERIC_ERROR_RESPONSE = "I'm having trouble with that request right now. Could you try again in a moment, or ask me something else?"
OUTPUT_FALLBACK_RESPONSE = "I apologize, but I'm unable to provide that response. Let me try to help you in a different way. Could you please rephrase your question?"

_BLOCKED_INPUT = {
    "PROMPT_INJECTION_DETECTED": "I noticed your message contains patterns that I cannot process. Could you please rephrase your question in a different way?",
    "EMPTY_AFTER_SANITIZATION": "Your message appears to be empty. Please try again with a valid question.",
}
_BLOCKED_INPUT_DEFAULT = "I couldn't process your message. Please try rephrasing your question."

_ESCALATION = {
    "crisis": "I'm very concerned about what you've shared. Your wellbeing is important. Please reach out to a crisis helpline. They're available 24/7 and want to help.",
    "legal": "I understand you have legal concerns. I'm going to connect you with a member of our team who can better assist with this matter. A representative will review your conversation and reach out shortly.",
    "complaint": "I understand you'd like to speak with someone from our team. I've flagged this conversation for review, and a human agent will follow up with you. Is there anything else I can help you with in the meantime?",
    "sentiment": "I can see you're frustrated, and I'm sorry for any inconvenience. I've noted your concerns and flagged this for follow-up by our team. Would you like me to continue trying to help, or would you prefer to wait for a human agent?",
}
_ESCALATION_DEFAULT = "I've noted your concerns and flagged this conversation for review by our team."

_MODERATION = {
    "crisis": "I'm concerned about what you've shared. If you're going through a difficult time, please reach out to a crisis helpline. You're not alone, and help is available.",
    "threat": "I'm really sorry, but I can't assist with that. If you're in a difficult situation, I would recommend seeking help from local authorities or professionals who can offer the right support. Is there anything else I can help you with?",
    "moderation": "I'm not able to respond to that type of message. If you have a customer support question, I'd be happy to help with that instead.",
}

def _render(source: str, **values: Any) -> str:
    return _env.from_string(source).render(**values).strip()

def blocked_input_response(reason: str | None) -> str:
    return _BLOCKED_INPUT.get(reason or "", _BLOCKED_INPUT_DEFAULT)

def escalation_response(escalation_type: str | None, template: str | None = None, **values: Any) -> Dict[str, Any]:
    """Mensagem + recursos + flag de handoff humano por tipo de escalonamento."""
    message = _ESCALATION.get(escalation_type or "", _ESCALATION_DEFAULT)
    if template:
        try:
            message = _render(template, type=escalation_type, **values)
        except TemplateError as exc:
            log.warning("response_template_invalid", type=escalation_type, error=str(exc))
    crisis = escalation_type == "crisis"
    return {
        "message": message,
        "resources": list(CRISIS_RESOURCES) if crisis else None,
        "show_human_handoff": not crisis,
    }

def moderation_fallback(categories: List[str]) -> Dict[str, Any]:
    """Resposta + tipo de escalonamento para entrada bloqueada pela moderação."""
    flagged = set(categories)
    if flagged & SELF_HARM_CATEGORIES:
        return {"message": _MODERATION["crisis"], "resources": list(CRISIS_RESOURCES), "should_escalate": True, "escalation_type": "crisis"}
    if flagged & THREAT_CATEGORIES:
        return {"message": _MODERATION["threat"], "resources": None, "should_escalate": True, "escalation_type": "threat"}
    if flagged:
        return {"message": _MODERATION["moderation"], "resources": None, "should_escalate": True, "escalation_type": "moderation"}
    return {"message": _MODERATION["moderation"], "resources": None, "should_escalate": False, "escalation_type": None}
