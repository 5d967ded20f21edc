"""
Product introduction copy.

Writes a short, request-aware introduction for one listing with the
advertising agent. Failure falls back to the listing's own snippet so the
caller always has something to show.
"""

from __future__ import annotations

from zoogent.config import get_logger
from zoogent.core.errors import MalformedModelOutputError, ModelInvocationError
from zoogent.core.models import AgentRole, JsonResult, SearchResultItem
from zoogent.core.parsing import decode_introduction
from zoogent.core.prompts import build_advertise_content
from zoogent.services.invoker import AgentInvoker

logger = get_logger(__name__)


async def introduce_product(
    invoker: AgentInvoker,
    request_text: str,
    item: SearchResultItem,
) -> str:
    """
    Return an introduction for ``item`` tailored to ``request_text``.

    Falls back to the item's snippet (or title, when it has none) if the
    agent fails or answers with an empty introduction.
    """
    fallback = item.snippet or item.title
    try:
        result = await invoker.run(
            AgentRole.ADVERTISE_PRODUCT, build_advertise_content(request_text, item)
        )
        if not isinstance(result, JsonResult):
            raise MalformedModelOutputError("advertise_product is not a json role")
        introduction = decode_introduction(result)
    except (ModelInvocationError, MalformedModelOutputError) as exc:
        logger.warning("Introduction fell back to snippet: %s", exc)
        return fallback
    return introduction or fallback
