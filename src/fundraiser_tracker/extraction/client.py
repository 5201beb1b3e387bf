from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

import httpx
import requests
from openai import APIConnectionError, APIError, APIStatusError, APITimeoutError, OpenAI

from ..config import BACKEND_OPENROUTER, ExtractionSettings
from ..logging import get_logger
from ..models import ParsedOrder
from .parser import ExtractionError, decode_response_text, parse_extraction_payload


LOG = get_logger("extraction-client")

SYSTEM_PROMPT = (
    "You are a strict JSON generator. Output ONLY a single JSON object that matches the provided schema. "
    "No prose, no markdown fences, no trailing text."
)


def build_prompt(text: str) -> str:
    return (
        "Extract order details from the following text.\n"
        "If a value is missing, use an empty string or 0.\n"
        f'Text: "{text}"'
    )


def order_schema() -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "customerName": {"type": "string", "description": "Full name of the customer"},
            "phoneNumber": {"type": "string", "description": "Phone number formatted nicely"},
            "items": {"type": "string", "description": "Summary of items ordered, e.g. '2x Cookies'"},
            "totalPrice": {"type": "number", "description": "Total price of the order in numbers only"},
            "notes": {"type": "string", "description": "Any special instructions or delivery notes"},
        },
        "required": ["customerName", "items", "totalPrice"],
    }


def _response_format() -> Dict[str, Any]:
    return {
        "type": "json_schema",
        "json_schema": {"name": "order", "schema": order_schema()},
    }


def _messages(text: str) -> List[Dict[str, Any]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_prompt(text)},
    ]


class ExtractionBackend(Protocol):
    """One request/response round trip; returns the model's raw text answer."""

    def complete(self, text: str) -> Optional[str]:
        ...


class OpenAIBackend:
    """Chat completions through the ``openai`` SDK (any OpenAI-compatible endpoint)."""

    def __init__(self, settings: ExtractionSettings, client: Optional[OpenAI] = None) -> None:
        self.settings = settings
        self._http_client: Optional[httpx.Client] = None
        if client is None:
            self._http_client = httpx.Client(
                timeout=httpx.Timeout(settings.timeout_seconds, connect=10.0),
            )
            client = OpenAI(
                api_key=settings.api_key,
                base_url=settings.base_url,
                http_client=self._http_client,
                max_retries=0,
            )
        self.client = client

    def complete(self, text: str) -> Optional[str]:
        LOG.info("Calling chat completions model='%s'", self.settings.model)
        try:
            completion = self.client.chat.completions.create(
                model=self.settings.model,
                messages=_messages(text),
                response_format=_response_format(),
                temperature=0,
            )
        except (APIConnectionError, APITimeoutError) as e:
            LOG.error("Network/timeout while calling extraction service: %s", e)
            raise ExtractionError("Could not reach the extraction service") from e
        except APIStatusError as e:
            body = getattr(getattr(e, "response", None), "text", None)
            LOG.error("Extraction service returned %s. Body preview: %r", getattr(e, "status_code", "?"), (body[:300] if body else None))
            raise ExtractionError(f"Extraction service returned HTTP {getattr(e, 'status_code', '?')}") from e
        except APIError as e:
            LOG.error("Extraction service call failed: %s", e)
            raise ExtractionError("Extraction service call failed") from e

        choice = completion.choices[0] if getattr(completion, "choices", None) else None
        message = getattr(choice, "message", None)
        content = getattr(message, "content", None)
        LOG.info("Chat completion finished id=%s (data=%s)", getattr(completion, "id", None), "ok" if content else "none")
        return content

    def close(self) -> None:
        if self._http_client is not None:
            self._http_client.close()


class OpenRouterBackend:
    """Thin wrapper around OpenRouter chat-completions requests."""

    ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(self, settings: ExtractionSettings) -> None:
        self.settings = settings
        self.endpoint = settings.base_url or self.ENDPOINT

    def complete(self, text: str) -> Optional[str]:
        payload = {
            "model": self.settings.model,
            "messages": _messages(text),
            "temperature": 0,
            "response_format": _response_format(),
        }
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = requests.post(
                self.endpoint,
                headers=headers,
                json=payload,
                timeout=self.settings.timeout_seconds,
            )
        except requests.RequestException as exc:
            LOG.error("OpenRouter request failed: %s", exc)
            raise ExtractionError("Could not reach the extraction service") from exc

        if resp.status_code >= 400:
            LOG.error("OpenRouter HTTP %s: %s", resp.status_code, resp.text[:500])
            raise ExtractionError(f"Extraction service returned HTTP {resp.status_code}")

        if not resp.text.strip():
            return None
        try:
            body = resp.json()
        except ValueError as exc:
            raise ExtractionError("Extraction service sent a non-JSON envelope") from exc
        choices = body.get("choices") if isinstance(body, dict) else None
        if not choices:
            LOG.error("OpenRouter returned no choices: %s", body)
            raise ExtractionError("Extraction service returned no choices")
        first = choices[0] if isinstance(choices[0], dict) else {}
        message = first.get("message")
        if not isinstance(message, dict):
            raise ExtractionError("Extraction service returned a choice without a message")
        return message.get("content")


class OrderExtractionClient:
    """Turn free text into order fields via an external language model.

    ``extract`` returns ``None`` when the service answers with an empty body
    and raises :class:`ExtractionError` for transport or format problems. No
    retries, no caching.
    """

    def __init__(self, backend: ExtractionBackend) -> None:
        self.backend = backend

    @classmethod
    def from_settings(cls, settings: ExtractionSettings) -> "OrderExtractionClient":
        if not settings.is_configured:
            raise ExtractionError("No API key configured for the extraction service")
        if settings.backend == BACKEND_OPENROUTER:
            return cls(OpenRouterBackend(settings))
        return cls(OpenAIBackend(settings))

    def extract(self, text: str) -> Optional[ParsedOrder]:
        if not text or not text.strip():
            raise ValueError("text to extract from must not be blank")
        raw = self.backend.complete(text)
        if raw is None or not raw.strip():
            LOG.info("Extraction service returned an empty answer")
            return None
        return parse_extraction_payload(decode_response_text(raw))

    def close(self) -> None:
        close = getattr(self.backend, "close", None)
        if callable(close):
            close()
