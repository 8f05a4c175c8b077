"""Shared plumbing for pipeline stages: one session turn, retry, schema validation."""

from __future__ import annotations

import json
import logging
from typing import TypeVar

from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ats_tailor.clients.conversation import ConversationSession
from ats_tailor.errors import MalformedResponseError, UpstreamError
from ats_tailor.utils.json_parser import extract_json_object

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, UpstreamError) and exc.transient


def to_json(payload) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


class PipelineStage:
    """Base class for the seven stages.

    Subclasses set ``name`` and ``temperature`` and call ``_ask`` once per
    run. Only transient upstream failures (429/5xx and dropped connections)
    are retried; turn timeouts,
    parse and shape errors propagate on the first occurrence.
    """

    name = "stage"
    temperature = 0.1
    isolated = False

    def __init__(
        self,
        *,
        max_attempts: int = 1,
        retry_wait_min: float = 1.0,
        retry_wait_max: float = 10.0,
    ):
        self.max_attempts = max(1, max_attempts)
        self.retry_wait_min = retry_wait_min
        self.retry_wait_max = retry_wait_max

    async def _ask(self, session: ConversationSession, prompt: str) -> dict:
        """Send ``prompt`` as one turn and return the parsed JSON object."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(min=self.retry_wait_min, max=self.retry_wait_max),
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                turn = await session.send_turn(prompt, self.temperature, isolated=self.isolated)
        return extract_json_object(turn.output_text)

    def _validate(self, model: type[M], data: dict) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            violations = [
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in exc.errors()
            ]
            logger.error("%s output failed validation: %s", self.name, violations[:5])
            raise MalformedResponseError(self.name, violations, raw=to_json(data)) from exc
