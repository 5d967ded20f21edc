"""
Agent invocation service.

Turns (role, user content) into exactly one hosted-model call. The
blocking SDK call runs in a worker thread under a per-call deadline; a
timeout is reported the same way as any other transport failure.
"""

from __future__ import annotations

import asyncio
import time

from zoogent.adapters.llm import LLMClient, get_llm_client
from zoogent.api.metrics import observe_llm_duration
from zoogent.config import LLM_CALL_TIMEOUT, get_logger
from zoogent.core.errors import ModelInvocationError
from zoogent.core.models import AgentResult, AgentRole
from zoogent.core.parsing import extract
from zoogent.core.prompts import get_instruction

logger = get_logger(__name__)


class AgentInvoker:
    """
    Run agent roles against an LLM client.

    Calls are stateless: nothing from one invoke() leaks into the next, so
    every piece of context a role needs must be in ``user_content``.
    """

    def __init__(
        self,
        client: LLMClient | None = None,
        provider: str | None = None,
        timeout: float = LLM_CALL_TIMEOUT,
    ):
        """
        Args:
            client: Pre-configured LLM client (optional).
            provider: LLM provider if client not provided.
            timeout: Per-call deadline in seconds.
        """
        self.client = client or get_llm_client(provider)
        self.timeout = timeout
        self.model = getattr(self.client, "model", "unknown")

    async def invoke(self, role: AgentRole | str, user_content: str) -> str:
        """
        Make one call for ``role`` and return the raw response text.

        Raises:
            ModelInvocationError: On timeout or any transport error. The
                original exception is chained as ``__cause__``; no partial
                text is ever returned.
        """
        instruction = get_instruction(role)
        role_name = instruction.role.value

        t0 = time.perf_counter()
        try:
            text, tokens = await asyncio.wait_for(
                asyncio.to_thread(
                    self.client.generate,
                    system=instruction.system_text,
                    user=user_content,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ModelInvocationError(
                f"{role_name} timed out after {self.timeout:.1f}s", role=role_name
            ) from TimeoutError(str(exc) or "deadline exceeded")
        except Exception as exc:
            raise ModelInvocationError(
                f"{role_name} failed: {exc}", role=role_name
            ) from exc
        finally:
            observe_llm_duration(role_name, time.perf_counter() - t0)

        logger.debug(
            "Agent call complete",
            extra={"role": role_name, "tokens": tokens, "chars": len(text or "")},
        )
        return text or ""

    async def run(self, role: AgentRole | str, user_content: str) -> AgentResult:
        """
        Invoke ``role`` and extract its declared output kind.

        Raises:
            ModelInvocationError: See invoke().
            MalformedModelOutputError: If a json role returns a non-blank
                answer without a parsable object.
        """
        instruction = get_instruction(role)
        raw = await self.invoke(instruction.role, user_content)
        return extract(instruction.output_kind, raw)
