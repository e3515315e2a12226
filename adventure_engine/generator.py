"""Generator client: the text-generation collaborator behind every role.

The engine injects a generator matching the protocol:

    async def generate(self, role: str, prompt: str, schema: type[T]) -> T: ...

`role` identifies which engine step is calling ("encounter", "narrative",
"npc", "quest"). `schema` is the pydantic model the reply must validate
against; the engine never sees untyped fields. Failures are raised as one of
three GeneratorError subclasses:

    GeneratorUnavailable: backend unreachable, timed out or returned an HTTP error
    GeneratorMalformed: reply is not JSON or fails schema validation
    GeneratorRefused: backend answered but declined to produce content

HttpGenerator is the production implementation (KoboldCpp or
OpenAI-compatible completion endpoints). Tests use a scripted stub instead.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Literal, Protocol, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class GeneratorError(RuntimeError):
    """Base class for every generator failure the engine can observe."""

    kind = "unavailable"


class GeneratorUnavailable(GeneratorError):
    """The backend cannot be reached or returned a transport error."""

    kind = "unavailable"


class GeneratorMalformed(GeneratorError):
    """The reply could not be parsed into the requested schema."""

    kind = "malformed"


class GeneratorRefused(GeneratorError):
    """The backend declined to produce the requested content."""

    kind = "refused"


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class Generator(Protocol):
    async def generate(self, role: str, prompt: str, schema: type[T]) -> T: ...


# ---------------------------------------------------------------------------
# Reply parsing (shared by every implementation that receives raw text)
# ---------------------------------------------------------------------------

_REFUSAL_RE = re.compile(
    r"^\s*(i'?m sorry|i cannot|i can'?t|i am unable|i won'?t|as an ai)\b",
    re.IGNORECASE,
)


def schema_hint(schema: type[BaseModel]) -> str:
    """Compact field list appended to a prompt: {"narration": "string", ...}."""
    fields: dict[str, str] = {}
    properties = schema.model_json_schema().get("properties", {})
    for name, prop in properties.items():
        if "enum" in prop:
            fields[name] = "|".join(str(v) for v in prop["enum"])
        else:
            fields[name] = prop.get("type", "any")
    return json.dumps(fields)


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned.strip()


def _first_json_object(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return text
    return text[start:end + 1]


def parse_reply(text: str, schema: type[T]) -> T:
    """Turn raw completion text into a validated ``schema`` instance."""
    if not text.strip() or _REFUSAL_RE.match(text):
        raise GeneratorRefused(f"Generator declined to answer: {text[:80]!r}")
    cleaned = _first_json_object(_strip_fences(text))
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise GeneratorMalformed(f"Reply is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise GeneratorMalformed(f"Reply must be a JSON object, got {type(data).__name__}")
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise GeneratorMalformed(
            f"Reply failed {schema.__name__} validation: {e.error_count()} error(s)"
        ) from e


# ---------------------------------------------------------------------------
# HttpGenerator: connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["koboldcpp", "openai"]


class HttpGenerator:
    """Async HTTP client for text-completion backends.

    Supported formats:
      "koboldcpp" : POST /api/v1/generate  {"prompt": ..., "max_length": ...}
                     Response: {"results": [{"text": "..."}]}
      "openai"    : POST /v1/completions   {"model": ..., "prompt": ...}
                     Response: {"choices": [{"text": "..."}]}

    Args:
        provider_url:    Base URL of the backend, e.g. "http://localhost:5001".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "koboldcpp".
        model:           Model identifier, used only by the openai format.
        timeout:         HTTP timeout in seconds. Defaults to 120.
        max_length:      Completion token limit sent with every request.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "koboldcpp",
        model: str = "",
        timeout: float = 120.0,
        max_length: int = 400,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._max_length = max_length

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "openai":
            url = f"{self._base_url}/v1/completions"
            body: dict = {"prompt": prompt, "max_tokens": self._max_length}
            if self._model:
                body["model"] = self._model
            return url, body

        # koboldcpp (default)
        url = f"{self._base_url}/api/v1/generate"
        return url, {"prompt": prompt, "max_length": self._max_length}

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        if self._format == "openai":
            choices = data.get("choices")
            if not choices or "text" not in choices[0]:
                raise GeneratorMalformed("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["text"]

        # koboldcpp
        results = data.get("results")
        if not results or "text" not in results[0]:
            raise GeneratorMalformed("Unexpected response format from KoboldCpp backend")
        return results[0]["text"]

    async def complete(self, role: str, prompt: str) -> str:
        url, body = self._build_request(prompt)
        logger.debug("generator call role=%s url=%s prompt_len=%d", role, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise GeneratorUnavailable(f"Cannot connect to generator backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise GeneratorUnavailable(
                f"Generator backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise GeneratorUnavailable(f"Generator backend timed out after {self._timeout}s") from e
        except httpx.RequestError as e:
            raise GeneratorUnavailable(f"Generator request failed: {e.__class__.__name__}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise GeneratorMalformed("Generator backend returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise GeneratorMalformed("Generator backend returned an unexpected JSON body")
        text = self._parse_response(data)
        logger.debug("generator response role=%s len=%d", role, len(text))
        return text

    async def generate(self, role: str, prompt: str, schema: type[T]) -> T:
        full_prompt = f"{prompt}\nRespond with one JSON object only: {schema_hint(schema)}"
        text = await self.complete(role, full_prompt)
        return parse_reply(text, schema)
