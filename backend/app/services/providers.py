"""Provider transports: one interface, three ways to reach an LLM.

  GeminiProvider          : google-genai, inline file parts + response schema
  OpenAICompatibleProvider: openai SDK (OpenAI, or Groq via base_url)
  RelayProvider           : POST to our own /api/analyze relay over httpx

Each ``send`` returns the raw response text and raises
``TransientProviderError`` or ``FatalProviderError``. Retrying and parsing
happen in the caller.
"""
import json
import logging
import os
from abc import ABC, abstractmethod

import httpx

from app.core.errors import FatalProviderError, ProviderError, TransientProviderError
from app.models.study_plan import EncodedPart, GenerationRequest
from app.services.file_encoder import ALLOWED_MIME_TYPES, decode_part
from app.services.prompt_builder import PromptBundle

logger = logging.getLogger("examprep.providers")
_prompt_logger = logging.getLogger("examprep.llm_prompts")

IMAGE_MIME_TYPES = frozenset({"image/png", "image/jpeg", "image/jpg"})

# The relay retries upstream itself, so a 500 from it is final.
DIRECT_TRANSIENT_STATUSES = frozenset({429, 500, 502, 503, 504})
RELAY_TRANSIENT_STATUSES = frozenset({429, 502, 503, 504})

# "perday" matches Gemini daily quota ids, e.g. GenerateRequestsPerDayPerProjectPerModel
_QUOTA_MARKERS = ("insufficient_quota", "billing_not_active", "perday")


def classify_status(
    status: int | None,
    message: str,
    transient_statuses: frozenset[int] = DIRECT_TRANSIENT_STATUSES,
) -> type[ProviderError]:
    """Map an HTTP status + provider message onto the error taxonomy."""
    lowered = (message or "").lower()
    if any(marker in lowered for marker in _QUOTA_MARKERS):
        return FatalProviderError
    if status in transient_statuses:
        return TransientProviderError
    return FatalProviderError


def _log_prompt(provider: str, prompt: PromptBundle, parts: list[EncodedPart]) -> None:
    if os.environ.get("DEBUG_LLM_PROMPTS", "").lower() not in ("1", "true"):
        return
    _prompt_logger.warning(
        "\n\n%s\n"
        "── PROVIDER ────────────────────────────────────────────\n%s\n"
        "── SYSTEM ──────────────────────────────────────────────\n%s\n"
        "── USER ────────────────────────────────────────────────\n%s\n"
        "── FILES ───────────────────────────────────────────────\n%s\n"
        "%s",
        "=" * 60,
        provider,
        prompt.system,
        prompt.instruction,
        "\n".join(f"  {p.filename or '(unnamed)'}  {p.mime_type}  {len(p.data)} b64 chars" for p in parts),
        "=" * 60,
    )


class StudyPlanProvider(ABC):
    """Accept a generation request, return the provider's raw text."""

    name: str = "provider"
    accepted_mime_types: frozenset[str] = frozenset(ALLOWED_MIME_TYPES)

    @abstractmethod
    async def send(self, request: GenerationRequest, prompt: PromptBundle) -> str:
        ...


# ──────────────────────────────────────────────
# Gemini
# ──────────────────────────────────────────────

class GeminiProvider(StudyPlanProvider):
    name = "Gemini"

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", temperature: float = 0.2, client=None):
        if client is None:
            from google import genai
            client = genai.Client(api_key=api_key)
        self._client = client
        self.model = model
        self.temperature = temperature

    async def send(self, request: GenerationRequest, prompt: PromptBundle) -> str:
        from google.genai import errors, types

        _log_prompt(self.name, prompt, request.parts)

        contents = [prompt.instruction]
        for part in request.parts:
            contents.append(types.Part.from_bytes(data=decode_part(part), mime_type=part.mime_type))

        config = types.GenerateContentConfig(
            system_instruction=prompt.system,
            temperature=self.temperature,
            response_mime_type="application/json",
            response_json_schema=prompt.response_schema,
        )

        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except errors.APIError as e:
            error_cls = classify_status(e.code, f"{e.status} {e.message} {e.details}")
            raise error_cls(f"Gemini API error {e.code}: {e.message}", status_code=e.code) from e
        except httpx.TransportError as e:
            raise TransientProviderError(f"Gemini unreachable: {e}") from e

        return response.text or ""


# ──────────────────────────────────────────────
# OpenAI-compatible (OpenAI, Groq)
# ──────────────────────────────────────────────

class OpenAICompatibleProvider(StudyPlanProvider):
    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        temperature: float = 0.2,
        client=None,
    ):
        if client is None:
            from openai import AsyncOpenAI
            client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self._client = client
        self.model = model
        self.temperature = temperature
        self.name = "Groq AI" if base_url and "groq" in base_url else "OpenAI"
        if self.name == "Groq AI":
            # Groq chat completions take image parts only
            self.accepted_mime_types = IMAGE_MIME_TYPES

    @staticmethod
    def _content_part(part: EncodedPart) -> dict:
        data_url = f"data:{part.mime_type};base64,{part.data}"
        if part.mime_type.startswith("image/"):
            return {"type": "image_url", "image_url": {"url": data_url}}
        return {
            "type": "file",
            "file": {"filename": part.filename or "document.pdf", "file_data": data_url},
        }

    async def send(self, request: GenerationRequest, prompt: PromptBundle) -> str:
        import openai

        _log_prompt(self.name, prompt, request.parts)

        user_content = [{"type": "text", "text": prompt.instruction_with_schema()}]
        user_content.extend(self._content_part(p) for p in request.parts)

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": prompt.system},
                    {"role": "user", "content": user_content},
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except openai.APIConnectionError as e:
            raise TransientProviderError(f"{self.name} unreachable: {e}") from e
        except openai.APIStatusError as e:
            message = f"{getattr(e, 'code', '') or ''} {e.message}"
            error_cls = classify_status(e.status_code, message)
            raise error_cls(f"{self.name} API error {e.status_code}: {e.message}", status_code=e.status_code) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


# ──────────────────────────────────────────────
# Backend relay
# ──────────────────────────────────────────────

class RelayProvider(StudyPlanProvider):
    """Client for a relay that performs the provider call server-side."""

    name = "ExamPrep relay"

    def __init__(self, url: str, timeout: float = 120.0, transport: httpx.AsyncBaseTransport | None = None):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def send(self, request: GenerationRequest, prompt: PromptBundle) -> str:
        # The relay builds its own prompt; only syllabus and files travel.
        payload = {
            "syllabus": request.syllabus,
            "files": [
                {"name": p.filename, "type": p.mime_type, "data": p.data}
                for p in request.parts
            ],
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
        except httpx.TransportError as e:
            raise TransientProviderError(f"Relay unreachable: {e}") from e

        if response.is_success:
            return response.text

        detail = _error_detail(response)
        error_cls = classify_status(response.status_code, detail, RELAY_TRANSIENT_STATUSES)
        raise error_cls(
            f"Relay returned {response.status_code}: {detail}",
            status_code=response.status_code,
        )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except (json.JSONDecodeError, ValueError):
        return response.reason_phrase or response.text[:200]
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body)
    return str(body)
