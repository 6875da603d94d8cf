"""
AI classifier adapter.

The entry parser only needs `classify(prompt) -> raw text`; this
module provides that over Gemini's generateContent endpoint using
httpx. It enforces no structure on the reply (the parser owns all
validation) and never retries: any transport problem is raised as
ClassifierUnavailable and the user decides whether to resend.

The API key travels in a header, never in the URL, so it cannot
end up in request logs.
"""

from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from ledger_bot.config import Settings
from ledger_bot.errors import ClassifierUnavailable
from ledger_bot.logging_config import get_logger

log = get_logger(__name__)


class Classifier(Protocol):
    async def classify(self, prompt: str) -> str: ...


@dataclass(frozen=True)
class ClassifierConfig:
    """Immutable classifier configuration."""

    api_key: str = ""           # never logged
    model: str = "gemini-1.5-flash-8b"
    base_url: str = "https://generativelanguage.googleapis.com"
    timeout: float = 25.0
    temperature: float = 0.1

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClassifierConfig":
        return cls(
            api_key=settings.GEMINI_API_KEY.strip(),
            model=settings.GEMINI_MODEL.strip(),
            base_url=settings.GEMINI_BASE_URL.strip().rstrip("/"),
            timeout=settings.CLASSIFIER_TIMEOUT_SECONDS,
        )


def extract_text(data: Any) -> str:
    """
    Concatenate the text parts of the first candidate.

    A body that does not have the generateContent shape raises
    ClassifierUnavailable, like any other unusable reply.
    """
    if not isinstance(data, dict):
        raise ClassifierUnavailable("AI service sent an unexpected reply")
    candidates = data.get("candidates") or []
    if not isinstance(candidates, list):
        raise ClassifierUnavailable("AI service sent an unexpected reply")
    if not candidates:
        return ""
    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not all(isinstance(part, dict) for part in parts):
        raise ClassifierUnavailable("AI service sent an unexpected reply")
    return "".join(str(part.get("text", "")) for part in parts).strip()


class GeminiClassifier:
    """Thin wrapper around the generateContent endpoint."""

    def __init__(
        self,
        config: ClassifierConfig,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout,
        )

    async def classify(self, prompt: str) -> str:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.config.temperature,
                "responseMimeType": "application/json",
            },
        }
        headers = {
            "x-goog-api-key": self.config.api_key,
            "Content-Type": "application/json",
        }
        try:
            response = await self._client.post(
                f"/v1beta/models/{self.config.model}:generateContent",
                headers=headers,
                json=payload,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            log.warning(
                "classifier_http_error",
                status=exc.response.status_code,
                model=self.config.model,
            )
            raise ClassifierUnavailable(
                f"AI service answered with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            log.warning("classifier_unreachable", error=type(exc).__name__)
            raise ClassifierUnavailable("AI service is unreachable") from exc
        except ValueError as exc:
            log.warning("classifier_non_json_body")
            raise ClassifierUnavailable("AI service sent an unreadable reply") from exc

        text = extract_text(data)
        if not text:
            log.warning("classifier_empty_reply", model=self.config.model)
            raise ClassifierUnavailable("AI service returned an empty reply")
        return text

    async def aclose(self) -> None:
        await self._client.aclose()
