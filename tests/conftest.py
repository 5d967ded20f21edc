"""Shared test doubles: a scripted LLM client and an in-memory search backend.

Exposed as factory fixtures so test modules never import this file directly.
"""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import Any, Callable

import pytest

import zoogent.core.policy as policy_mod
from zoogent.core.models import (
    AgentRole,
    DomainConfig,
    PipelineSettings,
)
from zoogent.core.policy import FailureMode, PolicyStep, StagePolicy
from zoogent.core.prompts import AGENT_INSTRUCTIONS
from zoogent.services.invoker import AgentInvoker
from zoogent.services.pipeline import PipelineOrchestrator
from zoogent.services.search import DomainSearchService

_ROLE_BY_SYSTEM = {
    instruction.system_text: role for role, instruction in AGENT_INSTRUCTIONS.items()
}


class FakeLLM:
    """
    LLM client scripted per role.

    A response may be a string, an exception instance (raised), a callable
    taking the user content, or a list consumed one entry per call (the
    last entry repeats). Unscripted roles answer with an empty string.
    """

    model = "fake-model"

    def __init__(self, responses: dict[AgentRole, Any] | None = None, default: Any = ""):
        self.responses = dict(responses or {})
        self.default = default
        self.calls: list[tuple[AgentRole, str]] = []
        self._lock = threading.Lock()

    def calls_for(self, role: AgentRole) -> list[str]:
        return [user for r, user in self.calls if r is role]

    def generate(self, system: str, user: str) -> tuple[str, int]:
        role = _ROLE_BY_SYSTEM[system]
        with self._lock:
            self.calls.append((role, user))
            response = self.responses.get(role, self.default)
            if isinstance(response, list):
                response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            response = response(user)
        return response, len(response)


class FakeSearchBackend:
    """
    Search backend returning canned hits per site.

    ``results`` maps site -> list of hit dicts, or is a callable
    ``(query, site) -> hits``. Sites in ``failing`` raise ConnectionError,
    as do queries in ``failing_queries``.
    """

    is_configured = True

    def __init__(
        self,
        results: dict[str, list[dict]] | Callable[[str, str], list[dict]] | None = None,
        failing: set[str] | None = None,
        failing_queries: set[str] | None = None,
    ):
        self.results = results or {}
        self.failing = failing or set()
        self.failing_queries = failing_queries or set()
        self.calls: list[tuple[str, str, int]] = []
        self._lock = threading.Lock()

    def search(self, query: str, site: str, max_results: int) -> list[dict]:
        with self._lock:
            self.calls.append((query, site, max_results))
        if site in self.failing or query in self.failing_queries:
            raise ConnectionError(f"backend down for {site}")
        if callable(self.results):
            hits = self.results(query, site)
        else:
            hits = self.results.get(site, [])
        return list(hits)[:max_results]


def hit(title: str, link: str | None = None, snippet: str = "") -> dict:
    return {
        "title": title,
        "link": link or f"https://shop.example/{title.lower().replace(' ', '-')}",
        "snippet": snippet or f"About {title}",
        "imageUrl": None,
    }


TEST_DOMAINS = DomainConfig(
    forum=("forum-a.example", "forum-b.example"),
    marketplace_b2c=("shop-a.example", "shop-b.example"),
    marketplace_b2b=("wholesale.example",),
)


@pytest.fixture
def make_llm():
    return FakeLLM


@pytest.fixture
def make_backend():
    return FakeSearchBackend


@pytest.fixture
def make_hit():
    return hit


@pytest.fixture
def domains():
    return TEST_DOMAINS


@pytest.fixture
def make_orchestrator():
    """Build an orchestrator over fakes; settings kwargs override defaults."""

    def _build(llm: FakeLLM, backend: FakeSearchBackend, **settings) -> PipelineOrchestrator:
        settings.setdefault("results_per_domain", 5)
        return PipelineOrchestrator(
            invoker=AgentInvoker(client=llm, timeout=5.0),
            search=DomainSearchService(backend, timeout=5.0),
            domains=TEST_DOMAINS,
            settings=PipelineSettings(**settings),
        )

    return _build


@pytest.fixture
def override_policy(monkeypatch):
    """Swap one step's entry in the failure-policy table for one test."""

    def _override(step: PolicyStep, mode: FailureMode, fallback: str | None = None) -> None:
        table = dict(policy_mod.STAGE_POLICIES)
        table[step] = StagePolicy(step, mode, fallback=fallback)
        monkeypatch.setattr(policy_mod, "STAGE_POLICIES", MappingProxyType(table))

    return _override
