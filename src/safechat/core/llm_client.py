"""Cliente HTTP para o gateway LiteLLM (chat-completions compatível com OpenAI)."""
from __future__ import annotations
from typing import Any, Dict, List
import httpx
from kink import di
from .settings import Settings
from .prompting import PromptBuilder
from .result import DependencyUnavailable

class LLMClient:
    """Gerador de respostas (ReplyGenerator). Falhas viram DependencyUnavailable."""
    def __init__(self, settings: Settings | None = None, prompts: PromptBuilder | None = None, transport: httpx.BaseTransport | None = None):
        self.settings = settings or di[Settings]
        self.prompts = prompts or PromptBuilder()
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.settings.litellm_base_url, timeout=self.settings.litellm_timeout_s, transport=self._transport)

    def generate(self, history: List[Dict[str, str]], context: Dict[str, Any]) -> str:
        payload = {
            "model": self.settings.litellm_model,
            "messages": self.prompts.messages(history, context),
            "temperature": self.settings.litellm_temperature,
            "max_tokens": self.settings.litellm_max_tokens,
        }
        try:
            with self._client() as cli:
                r = cli.post("/chat/completions", json=payload)
                r.raise_for_status()
                data = r.json()
            content = data["choices"][0]["message"]["content"]
        except httpx.TimeoutException as exc:
            raise DependencyUnavailable("reply_generator", f"timeout: {exc}") from exc
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
            raise DependencyUnavailable("reply_generator", str(exc)) from exc
        if not content:
            raise DependencyUnavailable("reply_generator", "empty completion")
        return content
