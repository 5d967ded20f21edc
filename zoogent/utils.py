"""
Shared utility functions.
"""

from __future__ import annotations

import importlib
import time
from contextlib import contextmanager
from types import ModuleType
from typing import TYPE_CHECKING, Generator

if TYPE_CHECKING:
    import logging


# ---------------------------------------------------------------------------
# Import Utilities
# ---------------------------------------------------------------------------


def require_import(
    package: str,
    *,
    pip_name: str | None = None,
    extras: str | None = None,
) -> ModuleType:
    """Import a package with a standardized error message.

    Used by the LLM adapters so a missing provider SDK fails with an
    install hint instead of a bare ModuleNotFoundError.

    Usage:
        anthropic = require_import("anthropic")
        prom = require_import("prometheus_client", pip_name="prometheus-client")

    Args:
        package: The Python package name to import.
        pip_name: The pip install name if different from package name.
        extras: Optional extras to include (e.g., "[api]").

    Returns:
        The imported module.

    Raises:
        ImportError: With a helpful message including install command.
    """
    try:
        return importlib.import_module(package)
    except ImportError as e:
        install_name = pip_name or package
        if extras:
            install_name = f"{install_name}{extras}"
        raise ImportError(
            f"{package} package required. Install with: pip install {install_name}"
        ) from e


@contextmanager
def timed_operation(
    name: str,
    logger: logging.Logger | None = None,
) -> Generator[None, None, None]:
    """Context manager for timing a pipeline step with optional logging.

    Usage:
        with timed_operation("Marketplace search", logger):
            candidates = await search.search(...)

    Duration is reported on exit even when the block raises.
    """
    t0 = time.perf_counter()
    try:
        yield
    finally:
        if logger is not None:
            logger.info("%s: %.0fms", name, (time.perf_counter() - t0) * 1000)


def truncate(text: str, limit: int = 120) -> str:
    """Shorten text for log lines."""
    text = " ".join((text or "").split())
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
