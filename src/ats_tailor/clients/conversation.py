"""Multi-turn conversation session owned by one pipeline run."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass

from ats_tailor.clients.llm_client import ModelGateway
from ats_tailor.errors import MalformedResponseError, TurnTimeoutError, truncate

logger = logging.getLogger(__name__)

DEFAULT_TURN_TIMEOUT = 90.0


@dataclass
class TurnResult:
    """Text and token usage of one completed turn."""

    output_text: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens


def extract_output_text(payload: dict) -> str:
    """Pull the output text out of a responses-style payload.

    Accepts either a top-level ``output_text`` string or an ``output`` array
    whose first element carries a ``content`` list of ``{type, text}`` parts.
    """
    if not isinstance(payload, dict):
        raise MalformedResponseError(
            "session", [f"expected an object payload, got {type(payload).__name__}"]
        )

    text = payload.get("output_text")
    if isinstance(text, str) and text:
        return text

    output = payload.get("output")
    if isinstance(output, list) and output and isinstance(output[0], dict):
        for part in output[0].get("content") or []:
            if (
                isinstance(part, dict)
                and part.get("type") in ("output_text", "text")
                and isinstance(part.get("text"), str)
            ):
                return part["text"]

    raise MalformedResponseError(
        "session",
        ["response has neither 'output_text' nor text content in 'output[0].content'"],
        raw=truncate(str(payload)),
    )


def extract_usage(payload: dict) -> tuple[int, int]:
    usage = payload.get("usage") or {}
    return int(usage.get("input_tokens") or 0), int(usage.get("output_tokens") or 0)


class ConversationSession:
    """Conversation context for one (resume, job) pipeline run.

    The local transcript in ``messages`` is the source of truth in every
    mode:

    - ``local``: the whole transcript is re-sent on each turn.
    - ``hosted``: turns are appended to a server-side conversation; only
      new messages go over the wire.
    - ``stateless``: each turn carries just the system prompt and the
      current user message.

    Sessions are single-use. Once closed they refuse further turns.
    """

    def __init__(
        self,
        gateway: ModelGateway,
        system_prompt: str,
        *,
        mode: str = "local",
        timeout: float = DEFAULT_TURN_TIMEOUT,
        conversation_id: str | None = None,
    ):
        if mode == "hosted" and not conversation_id:
            raise ValueError("hosted sessions need a conversation_id; use ConversationSession.create")
        self.gateway = gateway
        self.mode = mode
        self.timeout = timeout
        self.conversation_id = conversation_id
        self.session_id = conversation_id or f"local-{uuid.uuid4().hex[:12]}"
        self.messages: list[dict] = [{"role": "system", "content": system_prompt}]
        self.turn_number = 0
        self.input_tokens = 0
        self.output_tokens = 0
        self.closed = False
        self._system_sent = False

    @classmethod
    async def create(
        cls,
        gateway: ModelGateway,
        system_prompt: str,
        *,
        mode: str = "local",
        timeout: float = DEFAULT_TURN_TIMEOUT,
    ) -> ConversationSession:
        conversation_id = None
        if mode == "hosted":
            conversation_id = await gateway.create_conversation()
        session = cls(
            gateway, system_prompt, mode=mode, timeout=timeout, conversation_id=conversation_id
        )
        logger.debug("Opened %s session %s", mode, session.session_id)
        return session

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens

    async def send_turn(
        self,
        prompt: str,
        temperature: float = 0.1,
        *,
        isolated: bool = False,
    ) -> TurnResult:
        """Send one user turn and wait at most ``timeout`` seconds for the reply.

        ``isolated`` turns see only the system prompt and this message, never
        earlier turns. Their exchange is still recorded in the transcript.
        """
        if self.closed:
            raise RuntimeError(f"Session {self.session_id} is closed")

        turn = self.turn_number + 1
        user_message = {"role": "user", "content": prompt}
        logger.debug("Turn %d: sending %d chars (isolated=%s)", turn, len(prompt), isolated)
        try:
            result = await asyncio.wait_for(
                self._dispatch(user_message, temperature, isolated),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error("Turn %d timed out after %gs", turn, self.timeout)
            raise TurnTimeoutError(turn, self.timeout) from exc

        self.turn_number = turn
        self.messages.append(user_message)
        self.messages.append({"role": "assistant", "content": result.output_text})
        self.input_tokens += result.input_tokens
        self.output_tokens += result.output_tokens
        logger.debug("Turn %d: received %d chars, %d tokens", turn, len(result.output_text), result.tokens_used)
        return result

    def close(self) -> None:
        self.closed = True

    async def _dispatch(self, user_message: dict, temperature: float, isolated: bool) -> TurnResult:
        if isolated or self.mode == "stateless":
            response = await self.gateway.complete([self.messages[0], user_message], temperature)
            return TurnResult(response.text, response.input_tokens, response.output_tokens)

        if self.mode == "hosted":
            new_input = [user_message] if self._system_sent else [self.messages[0], user_message]
            payload = await self.gateway.respond(self.conversation_id, new_input, temperature)
            text = extract_output_text(payload)
            input_tokens, output_tokens = extract_usage(payload)
            self.gateway.record_usage(text, input_tokens, output_tokens)
            self._system_sent = True
            return TurnResult(text, input_tokens, output_tokens)

        response = await self.gateway.complete([*self.messages, user_message], temperature)
        return TurnResult(response.text, response.input_tokens, response.output_tokens)
