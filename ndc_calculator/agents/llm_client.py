"""LLM client abstraction.

Chat-completion client (OpenAI-compatible API over httpx) with:
- Structured JSON output with Pydantic validation
- Retry with exponential backoff (via ResilientInvoker)
- Token usage tracking

Agents use this client; they NEVER compute dispense quantities.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError

from ndc_calculator.errors import ExternalAPIError
from ndc_calculator.services.http import APIClient
from ndc_calculator.services.retry import ResilientInvoker

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


# ---------------------------------------------------------------------------
# Token tracking
# ---------------------------------------------------------------------------


@dataclass
class TokenUsage:
    """Token usage for a single LLM call."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


# ---------------------------------------------------------------------------
# Request / Response
# ---------------------------------------------------------------------------


@dataclass
class LLMRequest:
    """Structured request to the chat-completion API."""

    user_prompt: str
    output_schema: type[BaseModel]
    system_prompt: str = ""
    max_tokens: int = 1024
    temperature: float = 0.0


@dataclass
class LLMResponse:
    """Structured response from the chat-completion API."""

    content: str
    parsed: BaseModel
    model: str
    usage: TokenUsage


class _Message(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: str | None = None


class _Choice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: _Message


class _Usage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    prompt_tokens: int = 0
    completion_tokens: int = 0


class ChatCompletionResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    model: str = ""
    choices: list[_Choice] = Field(default_factory=list)
    usage: _Usage = Field(default_factory=_Usage)


# ---------------------------------------------------------------------------
# JSON extraction helpers
# ---------------------------------------------------------------------------

_JSON_BLOCK_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)


def _extract_json(raw: str) -> str:
    """Extract JSON from raw LLM output, stripping markdown fences."""
    match = _JSON_BLOCK_RE.search(raw)
    if match:
        return match.group(1).strip()
    return raw.strip()


# ---------------------------------------------------------------------------
# LLM client
# ---------------------------------------------------------------------------


class LLMClient:
    """Chat-completion client with structured output, retry, and tracking."""

    def __init__(
        self,
        api: APIClient,
        invoker: ResilientInvoker,
        *,
        api_key: str = "",
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
    ) -> None:
        self._api = api
        self._invoker = invoker
        self._api_key = api_key
        self.model = model
        self._base = base_url.rstrip("/")
        self._timeout = timeout
        self._usage_log: list[TokenUsage] = []

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    # ----- Structured output parsing -----

    def parse_structured_output(self, *, raw: str, schema: type[T]) -> T:
        """Parse raw LLM output into a validated Pydantic model.

        Raises ValueError if JSON is invalid or fails schema validation.
        """
        cleaned = _extract_json(raw)
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON from LLM: {exc}") from exc
        try:
            return schema.model_validate(data)
        except SchemaError as exc:
            raise ValueError(f"Schema validation failed: {exc}") from exc

    # ----- Completion -----

    async def complete(self, request: LLMRequest) -> LLMResponse:
        """Run a JSON-mode completion and validate it against the schema.

        Malformed or non-conforming output is retried (the model is
        non-deterministic); once the budget is spent it raises
        ExternalAPIError.
        """
        if not self.is_configured:
            raise ExternalAPIError("LLM API key is not configured", retryable=False)

        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.user_prompt})
        body = {
            "model": self.model,
            "messages": messages,
            "response_format": {"type": "json_object"},
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        async def op() -> LLMResponse:
            payload = await self._api.post_json(
                f"{self._base}/chat/completions",
                body=body,
                headers=headers,
                timeout=self._timeout,
            )
            try:
                completion = ChatCompletionResponse.model_validate(payload)
            except SchemaError as exc:
                raise ExternalAPIError("Unexpected chat completion payload") from exc

            content = completion.choices[0].message.content if completion.choices else None
            if not content:
                raise ExternalAPIError("Empty response from LLM")

            try:
                parsed = self.parse_structured_output(raw=content, schema=request.output_schema)
            except ValueError as exc:
                raise ExternalAPIError(str(exc)) from exc

            usage = TokenUsage(
                input_tokens=completion.usage.prompt_tokens,
                output_tokens=completion.usage.completion_tokens,
            )
            return LLMResponse(
                content=content,
                parsed=parsed,
                model=completion.model or self.model,
                usage=usage,
            )

        response = await self._invoker.invoke(op)
        self.record_usage(response.usage)
        logger.info(
            "LLM completion (%s): %d tokens", response.model, response.usage.total_tokens,
        )
        return response

    # ----- Retry / backoff -----

    def compute_backoff_delays(self) -> list[float]:
        """Exponential backoff delays a fully-failing call would wait."""
        return self._invoker.defaults.backoff_delays()

    # ----- Token tracking -----

    def record_usage(self, usage: TokenUsage) -> None:
        """Record token usage from a call."""
        self._usage_log.append(usage)

    def cumulative_usage(self) -> TokenUsage:
        """Return cumulative token usage across all recorded calls."""
        total_in = sum(u.input_tokens for u in self._usage_log)
        total_out = sum(u.output_tokens for u in self._usage_log)
        return TokenUsage(input_tokens=total_in, output_tokens=total_out)

    def reset_usage(self) -> None:
        """Reset cumulative token usage."""
        self._usage_log.clear()
