
"""Cliente HTTP do classificador de conteúdo (endpoint /moderations compatível com OpenAI)."""
from __future__ import annotations
import httpx
from kink import di
from ...core.settings import Settings
from ...core.result import DependencyUnavailable
from ...ports.interfaces import ClassifierOutput

class ModerationApiClassifier:
    """Adapter para a API de moderação. Qualquer falha vira DependencyUnavailable."""
    def __init__(self, settings: Settings | None = None, transport: httpx.BaseTransport | None = None):
        self.s = settings or di[Settings]
        self._transport = transport

    def _client(self) -> httpx.Client:
        headers = {"Authorization": f"Bearer {self.s.classifier_api_key}"} if self.s.classifier_api_key else {}
        return httpx.Client(
            base_url=self.s.classifier_base_url,
            timeout=self.s.classifier_timeout_s,
            headers=headers,
            transport=self._transport,
        )

    def classify(self, text: str) -> ClassifierOutput:
        payload = {"model": self.s.classifier_model, "input": text}
        try:
            with self._client() as cli:
                r = cli.post("/moderations", json=payload)
                r.raise_for_status()
                data = r.json()
        except httpx.TimeoutException as exc:
            raise DependencyUnavailable("classifier", f"timeout: {exc}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise DependencyUnavailable("classifier", str(exc)) from exc
        results = data.get("results") or []
        if not results:
            raise DependencyUnavailable("classifier", "empty results")
        return ClassifierOutput.model_validate(results[0])
