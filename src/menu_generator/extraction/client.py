from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
import base64
import time

import httpx
import requests
from openai import OpenAI, APIConnectionError, APITimeoutError, APIStatusError, OpenAIError

from ..config import GenerationConfig, Settings
from ..domain.constants import IMAGE_MIME_TYPES
from ..errors import ExtractionFailure
from ..logging import get_logger
from .schema import prompt, response_format

LOG = get_logger("extraction-client")

SYSTEM_PROMPT = (
    "You are a strict JSON generator. Output ONLY a single JSON object that matches the provided schema. "
    "No prose, no markdown fences, no trailing text."
)

_MIME_ALIASES = {"image/jpg": "image/jpeg", "image/pjpeg": "image/jpeg"}


# ---------- input helpers ----------
def normalize_mime_type(mime_type: Optional[str]) -> str:
    base = (mime_type or "").split(";", 1)[0].strip().lower()
    return _MIME_ALIASES.get(base, base)


def image_data_url(image_bytes: bytes, mime_type: str) -> str:
    b64 = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{b64}"


def build_messages(data_url: str) -> List[Dict[str, Any]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": prompt()},
                {"type": "image_url", "image_url": {"url": data_url}},
            ],
        },
    ]


# ---------- backends ----------
class OpenAIBackend:
    """Chat Completions (vision) through the OpenAI SDK."""

    name = "openai"

    def __init__(self, settings: Settings, *, client: Optional[Any] = None) -> None:
        self.settings = settings
        self._client = client

    def _build_client(self) -> Tuple[Any, Optional[httpx.Client]]:
        if self._client is not None:
            return self._client, None
        timeout = self.settings.generation.timeout_seconds
        http_client = httpx.Client(
            timeout=httpx.Timeout(timeout, connect=10.0),
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
        client = OpenAI(
            api_key=self.settings.api_key,
            base_url=self.settings.base_url,
            http_client=http_client,
            max_retries=0,
        )
        return client, http_client

    def complete(self, messages: List[Dict[str, Any]]) -> Optional[str]:
        gen = self.settings.generation
        kwargs: Dict[str, Any] = {
            "model": self.settings.model_name,
            "messages": messages,
            "temperature": gen.temperature,
            "top_p": gen.top_p,
            "max_tokens": gen.max_output_tokens,
            "timeout": gen.timeout_seconds,
        }
        if gen.structured_output:
            kwargs["response_format"] = response_format()
        LOG.debug("top_k=%s is not supported by the OpenAI API; omitted", gen.top_k)

        client, http_client = self._build_client()
        try:
            completion = client.chat.completions.create(**kwargs)
        except (APIConnectionError, APITimeoutError) as e:
            raise ExtractionFailure(f"Network/timeout while calling the model: {e}") from e
        except APIStatusError as e:
            body = getattr(getattr(e, "response", None), "text", None)
            LOG.error("OpenAI API returned %s. Body preview: %r", getattr(e, "status_code", "?"), (body[:300] if body else None))
            raise ExtractionFailure(f"Model API returned status {getattr(e, 'status_code', '?')}") from e
        except OpenAIError as e:
            raise ExtractionFailure(f"Model call failed: {e}") from e
        finally:
            if http_client is not None:
                http_client.close()

        rid = getattr(completion, "id", None)
        usage = getattr(completion, "usage", None)
        usage_dict = {k: getattr(usage, k, None) if usage else None for k in ("prompt_tokens", "completion_tokens", "total_tokens")}
        LOG.info("Chat completion finished id=%s usage=%s", rid, usage_dict)

        choices = getattr(completion, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        if message is None:
            return None
        refusal = getattr(message, "refusal", None)
        if refusal:
            raise ExtractionFailure(f"Model refused the request: {refusal}")
        return message.content


class OpenRouterBackend:
    """Plain HTTP call against the OpenRouter chat-completions endpoint."""

    name = "openrouter"
    ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def complete(self, messages: List[Dict[str, Any]]) -> Optional[str]:
        gen = self.settings.generation
        payload: Dict[str, Any] = {
            "model": self.settings.model_name,
            "messages": messages,
            "temperature": gen.temperature,
            "top_p": gen.top_p,
            "top_k": gen.top_k,
            "max_tokens": gen.max_output_tokens,
        }
        if gen.structured_output:
            payload["response_format"] = response_format()
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = requests.post(
                self.ENDPOINT,
                headers=headers,
                json=payload,
                timeout=gen.timeout_seconds,
            )
        except requests.Timeout as exc:
            raise ExtractionFailure(f"OpenRouter request timed out after {gen.timeout_seconds}s") from exc
        except requests.RequestException as exc:
            raise ExtractionFailure(f"OpenRouter request failed: {exc}") from exc

        if resp.status_code >= 400:
            LOG.error("OpenRouter HTTP %s: %s", resp.status_code, resp.text[:500])
            raise ExtractionFailure(f"OpenRouter returned HTTP {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as exc:
            raise ExtractionFailure("OpenRouter returned a non-JSON body") from exc
        error = body.get("error") if isinstance(body, dict) else None
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            raise ExtractionFailure(f"OpenRouter error: {message}")
        choices = (body.get("choices") if isinstance(body, dict) else None) or []
        if not choices:
            LOG.error("OpenRouter returned no choices: %s", body)
            return None
        message = choices[0].get("message") or {}
        return message.get("content")


def backend_for(settings: Settings) -> Any:
    if settings.backend == "openrouter":
        return OpenRouterBackend(settings)
    return OpenAIBackend(settings)


# ---------- client ----------
class ExtractionClient:
    """Send one menu image to the vision model and return its raw text output.

    One outbound call per `extract()`; no retries. Any failure surfaces as
    ExtractionFailure.
    """

    def __init__(self, settings: Settings, *, backend: Optional[Any] = None) -> None:
        self.settings = settings
        self.backend = backend or backend_for(settings)

    @property
    def generation(self) -> GenerationConfig:
        return self.settings.generation

    def validate_image(self, image_bytes: bytes, mime_type: Optional[str]) -> str:
        if not image_bytes:
            raise ExtractionFailure("Image is empty")
        mime = normalize_mime_type(mime_type)
        if mime not in IMAGE_MIME_TYPES:
            raise ExtractionFailure(f"Unsupported image type: {mime_type or 'unknown'}")
        limit = self.settings.max_image_bytes
        if limit and len(image_bytes) > limit:
            raise ExtractionFailure(f"Image is {len(image_bytes)} bytes; limit is {limit} bytes")
        return mime

    def extract(self, image_bytes: bytes, mime_type: Optional[str]) -> str:
        mime = self.validate_image(image_bytes, mime_type)
        url = image_data_url(image_bytes, mime)
        approx_payload_mb = round(len(url) / (1024 * 1024), 2)
        LOG.info(
            "Calling %s model='%s' (image %s, ~data URL %.2f MiB, structured=%s)",
            getattr(self.backend, "name", "backend"),
            self.settings.model_name,
            mime,
            approx_payload_mb,
            self.generation.structured_output,
        )

        t0 = time.perf_counter()
        text = self.backend.complete(build_messages(url))
        dt = time.perf_counter() - t0

        if not isinstance(text, str) or not text.strip():
            LOG.error("Model returned no content after %.2fs", dt)
            raise ExtractionFailure("Model returned no content")
        LOG.info("Extraction finished in %.2fs (%d chars)", dt, len(text))
        return text
