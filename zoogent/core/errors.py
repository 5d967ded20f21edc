"""
Error taxonomy for the shopping pipeline.

Adapters raise built-in exceptions (TimeoutError, ConnectionError,
RuntimeError); services wrap them in these types so the orchestrator and
the API layer can apply per-stage policy without inspecting SDK errors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from zoogent.core.models import PipelineStage, UserRequest


class ZooGentError(Exception):
    """Base class for every pipeline error.

    ``stage`` and ``request`` are filled in by the orchestrator when the
    error escapes a turn, so callers can keep the user's original text.
    """

    def __init__(
        self,
        message: str,
        *,
        stage: PipelineStage | None = None,
        request: UserRequest | None = None,
    ):
        super().__init__(message)
        self.stage = stage
        self.request = request


class ModelInvocationError(ZooGentError):
    """Transport failure or timeout talking to the hosted model."""

    def __init__(self, message: str, *, role: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.role = role

    @property
    def is_timeout(self) -> bool:
        return isinstance(self.__cause__, TimeoutError)


class MalformedModelOutputError(ZooGentError):
    """Model text could not be decoded into the expected structure."""

    def __init__(self, message: str, *, raw_text: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.raw_text = raw_text


class SearchBackendError(ZooGentError):
    """Web search transport failure."""

    def __init__(self, message: str, *, domain: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.domain = domain


class NoResultsError(ZooGentError):
    """The pipeline produced zero products after every fallback."""


__all__ = [
    "ZooGentError",
    "ModelInvocationError",
    "MalformedModelOutputError",
    "SearchBackendError",
    "NoResultsError",
]
