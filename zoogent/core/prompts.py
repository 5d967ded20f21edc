"""
LLM prompt templates for every agent role.

Each role has one fixed system instruction and a declared output kind.
The registry is read-only after import; user-content builders interpolate
the per-turn context (request text, prior turn, buyer type, JSON payloads).

Prompt design rationale:
1. "Output ONLY ..." - Agents are parsed, not read; prose breaks parsing
2. Numbered lists for names - Survives chatty models (prefix scan)
3. JSON objects for indices/orderings - First-to-last brace extraction
4. Buyer type stated explicitly - Same request means different things to B2B
"""

from __future__ import annotations

import json
from types import MappingProxyType
from typing import Mapping

from zoogent.core.models import (
    AgentInstruction,
    AgentRole,
    OutputKind,
    SearchResultItem,
    UserRequest,
    UserType,
)


CLASSIFY_INTENT_PROMPT = """You are the Intent Agent of ZooGent, a shopping assistant.

Decide whether the requester is an individual consumer (B2C) or a business buyer (B2B).
Signals for B2B: bulk quantities, wholesale, suppliers, MOQ, company or office use, resale, invoices.
Everything else is B2C.

Return ONLY a JSON object exactly like this:
{"userType": "B2C"}
No explanation, no extra text."""


REWRITE_QUERY_PROMPT = """You are the Search Agent of ZooGent.

Rewrite ONLY the user's message into a clear, SEO-friendly English search query focused on the user's needs.
If a previous request is given, resolve follow-ups against it (e.g. "cheaper ones" refers to the previous product).
For B2B buyers, phrase the query for suppliers or wholesale listings.
DO NOT repeat the original message verbatim.
Output ONLY the single rewritten query - no explanations, no prefixes, no quotes."""


EXPAND_QUERY_PROMPT = """You are the Query Strategist of ZooGent.

Given a product search query, produce 3 to 5 distinct, strategic marketplace search queries that together cover
the best candidates: vary brand, key specification, price tier and common alternative names.
Output ONLY a numbered list in the format '1. query'. No explanations."""


SUMMARIZE_FORUM_PROMPT = """You are the Summarize Agent of ZooGent.

Read the forum search results (title, snippet, domain) and write a single, well-structured paragraph that
introduces the product being discussed, highlights key features, advantages and disadvantages, and summarizes
the main points of debate across the forums.
Limit your summary to 100 words.
Do not add unverified information - only use what is implied by the provided results."""


RECOMMEND_PRODUCTS_PROMPT = """You are the Product Recommend Agent of ZooGent.

Read the user's request and the forum search results as optional context; you may also use your own broad
knowledge of the market. Return at least 1 and at most 5 specific, currently-sold, best-matching products with
full product names including exact model numbers.
Output ONLY a numbered list in the format '1. Brand ModelNumber'. No explanations or extra text."""


RECOMMEND_PRODUCTS_REQUEST_ONLY_PROMPT = """You are the Product Recommend Agent of ZooGent.

Read the user's request and use your own broad knowledge of the market to recommend the best-matching products.
Return at least 1 and at most 5 specific, currently-sold products with full product names including model numbers.
Output ONLY a numbered list in the format '1. Brand ModelNumber'. No explanations or extra text."""


FILTER_RELEVANCE_PROMPT = """You are the Relevance Agent of ZooGent.

You receive a search query, the buyer type, and a JSON array of marketplace listings, each with an "index",
"title" and "snippet". Keep only listings that are actual products matching the query for this buyer type;
drop accessories, unrelated items, category pages and articles.

Return ONLY a JSON object exactly like this:
{"relevantIndices": [0, 2, 3]}
No explanation, no extra text."""


RANK_PRODUCTS_PROMPT = """You are the Match Agent of ZooGent.

Rank the provided marketplace listings from most suitable to least suitable for the user's request and buyer
type. Echo every listing object back EXACTLY as given - do not edit, add or invent fields or listings.

Return ONLY a JSON object like this:
{"products": [{...listing...}, {...listing...}]}
No explanation, no extra text."""


MATCH_PRODUCTS_PROMPT = """You are the Match Agent of ZooGent.

Rank the provided products from most suitable (1) to least suitable (N) based solely on how well they fit the
user's request. Use the product names exactly as given.

Return ONLY a JSON object like this:
{"products": ["Product1", "Product2"]}
No explanation, no extra text."""


ADVERTISE_PRODUCT_PROMPT = """You are the Product Advertising Agent of ZooGent.

Write a concise, appealing introduction (2-3 sentences) for the given product, highlighting how it matches the
user's needs. Base your wording on the provided product details but rewrite them as a natural introduction.

Return ONLY a JSON object exactly like this:
{"introduction": "Your product introduction here."}
No extra text, no explanation."""


CONCLUDE_PROMPT = """You are the Conclusion Agent of ZooGent.

Write a short, friendly closing message (at most 2 sentences) that names the product category the user asked for
and confirms that the ranked marketplace results below were found for them.
Do not list the products again and do not invent prices."""


_INSTRUCTIONS: dict[AgentRole, AgentInstruction] = {
    instruction.role: instruction
    for instruction in (
        AgentInstruction(AgentRole.CLASSIFY_INTENT, CLASSIFY_INTENT_PROMPT, OutputKind.JSON),
        AgentInstruction(AgentRole.REWRITE_QUERY, REWRITE_QUERY_PROMPT, OutputKind.TEXT),
        AgentInstruction(AgentRole.EXPAND_QUERY, EXPAND_QUERY_PROMPT, OutputKind.LIST),
        AgentInstruction(AgentRole.SUMMARIZE_FORUM, SUMMARIZE_FORUM_PROMPT, OutputKind.TEXT),
        AgentInstruction(AgentRole.RECOMMEND_PRODUCTS, RECOMMEND_PRODUCTS_PROMPT, OutputKind.LIST),
        AgentInstruction(
            AgentRole.RECOMMEND_PRODUCTS_REQUEST_ONLY,
            RECOMMEND_PRODUCTS_REQUEST_ONLY_PROMPT,
            OutputKind.LIST,
        ),
        AgentInstruction(AgentRole.FILTER_RELEVANCE, FILTER_RELEVANCE_PROMPT, OutputKind.JSON),
        AgentInstruction(AgentRole.RANK_PRODUCTS, RANK_PRODUCTS_PROMPT, OutputKind.JSON),
        AgentInstruction(AgentRole.MATCH_PRODUCTS, MATCH_PRODUCTS_PROMPT, OutputKind.JSON),
        AgentInstruction(AgentRole.ADVERTISE_PRODUCT, ADVERTISE_PRODUCT_PROMPT, OutputKind.JSON),
        AgentInstruction(AgentRole.CONCLUDE, CONCLUDE_PROMPT, OutputKind.TEXT),
    )
}

AGENT_INSTRUCTIONS: Mapping[AgentRole, AgentInstruction] = MappingProxyType(_INSTRUCTIONS)


def get_instruction(role: AgentRole | str) -> AgentInstruction:
    """
    Look up the fixed instruction for a role.

    Raises:
        KeyError: If the role is not registered.
    """
    return AGENT_INSTRUCTIONS[AgentRole(role)]


# ---------------------------------------------------------------------------
# User-content builders
# ---------------------------------------------------------------------------


def _dumps(payload) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _request_block(request: UserRequest) -> str:
    lines = [f"User request:\n{request.text}"]
    if request.prior_text:
        lines.append(f"Previous request:\n{request.prior_text}")
    return "\n\n".join(lines)


def format_forum_results(results: list[SearchResultItem]) -> str:
    """Bullet list of forum hits for summarization and recommendation context."""
    if not results:
        return "(No forum results)"
    return "\n\n".join(
        f"- {item.title} ({item.domain})\n{item.snippet}\n{item.link}".rstrip()
        for item in results
    )


def build_classify_content(request: UserRequest) -> str:
    return _request_block(request)


def build_rewrite_content(request: UserRequest) -> str:
    return f"{_request_block(request)}\n\nBuyer type: {request.user_type.label}"


def build_expand_content(query: str, user_type: UserType) -> str:
    return f"Search query:\n{query}\n\nBuyer type: {user_type.label}"


def build_forum_summary_content(results: list[SearchResultItem]) -> str:
    return f"Forum results:\n{format_forum_results(results)}"


def build_recommend_content(
    request: UserRequest,
    forum_results: list[SearchResultItem] | None = None,
) -> str:
    """Request plus optional forum context; None means request-only."""
    content = f"{_request_block(request)}\n\nBuyer type: {request.user_type.label}"
    if forum_results is not None:
        content += f"\n\nForum results:\n{format_forum_results(forum_results)}"
    return content


def build_filter_content(
    query: str,
    items: list[SearchResultItem],
    user_type: UserType,
) -> str:
    projection = [
        {"index": i, **item.to_prompt_dict()} for i, item in enumerate(items)
    ]
    return (
        f"Search query:\n{query}\n\nBuyer type: {user_type.label}\n\n"
        f"Listings:\n{_dumps(projection)}"
    )


def build_rank_content(
    query: str,
    items: list[SearchResultItem],
    user_type: UserType,
) -> str:
    listings = [item.to_dict() for item in items]
    return (
        f"User request:\n{query}\n\nBuyer type: {user_type.label}\n\n"
        f"Listings to rank:\n{_dumps(listings)}"
    )


def build_match_content(query: str, names: list[str], user_type: UserType) -> str:
    return (
        f"User request:\n{query}\n\nBuyer type: {user_type.label}\n\n"
        "Products to rank (one per line):\n" + "\n".join(names)
    )


def build_advertise_content(request_text: str, item: SearchResultItem) -> str:
    return f"User request:\n{request_text}\n\nProduct details (JSON):\n{_dumps(item.to_dict())}"


def build_conclusion_content(
    request: UserRequest,
    products: list[SearchResultItem],
    top_n: int = 20,
) -> str:
    listings = [
        {"title": item.title, "domain": item.domain} for item in products[:top_n]
    ]
    return f"{_request_block(request)}\n\nRanked results:\n{_dumps(listings)}"
