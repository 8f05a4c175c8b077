"""OpenAI API wrapper: single-shot chat completions and hosted conversations."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

import openai

from ats_tailor.errors import (
    ConfigurationError,
    ConnectionFailedError,
    EmptyResponseError,
    UpstreamError,
    truncate,
)
from ats_tailor.utils.json_parser import extract_json_object

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


@dataclass
class LLMResponse:
    """Response from the LLM including usage metadata."""

    text: str
    input_tokens: int
    output_tokens: int

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ModelGateway:
    """Async model client. Performs exactly one backend request per call.

    Retries are the caller's business, so the SDK's own retry loop is
    disabled (``max_retries=0``).
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str | None = None,
        log_payloads: bool = False,
        client: openai.AsyncOpenAI | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.log_payloads = log_payloads
        self._client = client
        self._token_log: list[tuple[str, int, int]] = []  # (model, input_tokens, output_tokens)

    @property
    def client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError(
                    "No model API key configured. Set OPENAI_API_KEY or llm.api_key."
                )
            kwargs: dict = {"api_key": self.api_key, "max_retries": 0}
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self._client = openai.AsyncOpenAI(**kwargs)
        return self._client

    async def invoke(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.1,
        expect_json: bool = True,
    ) -> dict | str:
        """Send one system+user turn; return the parsed JSON object or raw text."""
        if not system_prompt or not system_prompt.strip():
            raise ValueError("system_prompt must be a non-empty string")
        if not user_prompt or not user_prompt.strip():
            raise ValueError("user_prompt must be a non-empty string")
        response = await self.complete(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            expect_json=expect_json,
        )
        return extract_json_object(response.text) if expect_json else response.text

    async def complete(
        self,
        messages: list[dict],
        temperature: float = 0.1,
        expect_json: bool = True,
    ) -> LLMResponse:
        """Run a chat completion over ``messages`` and return the first choice."""
        _check_temperature(temperature)
        kwargs: dict = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if expect_json:
            kwargs["response_format"] = {"type": "json_object"}

        self._log_request(messages, temperature)
        try:
            completion = await self.client.chat.completions.create(**kwargs)
        except openai.APIStatusError as exc:
            logger.error("Model backend error: %s", exc.status_code)
            raise UpstreamError(exc.status_code, _error_body(exc)) from exc
        except openai.APIConnectionError as exc:
            raise _connection_failed(exc) from exc

        if not completion.choices:
            raise EmptyResponseError("Model backend returned no completions")

        text = completion.choices[0].message.content or ""
        usage = completion.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0
        self._record(text, input_tokens, output_tokens)
        return LLMResponse(text=text, input_tokens=input_tokens, output_tokens=output_tokens)

    async def create_conversation(self) -> str:
        """Create a server-side conversation object and return its id."""
        try:
            conversation = await self.client.conversations.create()
        except openai.APIStatusError as exc:
            raise UpstreamError(exc.status_code, _error_body(exc)) from exc
        except openai.APIConnectionError as exc:
            raise _connection_failed(exc) from exc
        logger.debug("Created conversation %s", conversation.id)
        return conversation.id

    async def respond(
        self,
        conversation_id: str,
        messages: list[dict],
        temperature: float = 0.1,
        expect_json: bool = True,
    ) -> dict:
        """Post new turn input to a hosted conversation; return the raw payload.

        Text extraction is left to the caller because the payload shape
        varies between backends.
        """
        _check_temperature(temperature)
        kwargs: dict = {
            "model": self.model,
            "conversation": conversation_id,
            "input": messages,
            "store": True,
            "temperature": temperature,
        }
        if expect_json:
            kwargs["text"] = {"format": {"type": "json_object"}}

        self._log_request(messages, temperature)
        try:
            response = await self.client.responses.create(**kwargs)
        except openai.APIStatusError as exc:
            logger.error("Model backend error: %s", exc.status_code)
            raise UpstreamError(exc.status_code, _error_body(exc)) from exc
        except openai.APIConnectionError as exc:
            raise _connection_failed(exc) from exc

        if isinstance(response, dict):
            return response
        payload = response.model_dump()
        output_text = getattr(response, "output_text", None)
        if output_text:
            payload["output_text"] = output_text
        return payload

    def record_usage(self, text: str, input_tokens: int, output_tokens: int) -> None:
        """Log token usage for a response whose text was extracted elsewhere."""
        self._record(text, input_tokens, output_tokens)

    def get_token_summary(self) -> dict:
        """Return accumulated token usage and reset the log."""
        summary = {
            "input": sum(t[1] for t in self._token_log),
            "output": sum(t[2] for t in self._token_log),
            "calls": list(self._token_log),
        }
        self._token_log.clear()
        return summary

    def _log_request(self, messages: list[dict], temperature: float) -> None:
        total_chars = sum(len(str(m.get("content", ""))) for m in messages)
        logger.debug(
            "LLM call: model=%s temperature=%s messages=%d chars=%d",
            self.model, temperature, len(messages), total_chars,
        )
        if self.log_payloads and messages:
            logger.debug("LLM request (latest message): %s", truncate(str(messages[-1].get("content")), 4000))

    def _record(self, text: str, input_tokens: int, output_tokens: int) -> None:
        logger.debug(
            "LLM response: %d chars, %d input, %d output tokens",
            len(text), input_tokens, output_tokens,
        )
        if self.log_payloads:
            logger.debug("LLM response body: %s", truncate(text, 4000))
        self._token_log.append((self.model, input_tokens, output_tokens))


def _check_temperature(temperature: float) -> None:
    if not 0.0 <= temperature <= 1.0:
        raise ValueError(f"temperature must be within [0, 1], got {temperature}")


def _error_body(exc: openai.APIStatusError) -> str:
    body = exc.body
    if isinstance(body, (dict, list)):
        return json.dumps(body)
    return str(body) if body else exc.message


def _connection_failed(exc: openai.APIConnectionError) -> ConnectionFailedError:
    kind = "timed out" if isinstance(exc, openai.APITimeoutError) else "connection failed"
    logger.error("Model backend %s: %s", kind, exc)
    return ConnectionFailedError(f"{kind}: {exc}")
