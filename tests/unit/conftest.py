"""Unit test fixtures — fake clock, wired service and FastMCP client."""

from __future__ import annotations

import pytest
from fastmcp import Client

from relayguard.actions import InMemoryActionExecutor
from relayguard.config import AuditConfig
from relayguard.observability import LatencyRecorder
from relayguard.ratelimit import RateLimiter
from relayguard.server import create_server
from relayguard.service import ModerationService

T0 = 1_700_000_000


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def service(clock) -> ModerationService:
    """A fully wired service on the fake clock with its own metrics."""
    svc = ModerationService.create(
        audit_config=AuditConfig(capacity=1000),
        metrics=LatencyRecorder(),
        clock=clock,
    )
    return svc


@pytest.fixture()
def executor(service) -> InMemoryActionExecutor:
    """The in-memory enforcement registry behind *service*."""
    return service.dispatcher.executor


@pytest.fixture()
async def mcp_client(service):
    """Yield a FastMCP Client wired to a RelayGuard server."""
    async with Client(create_server(service)) as client:
        yield client
    await service.shutdown()


@pytest.fixture()
def limiter(clock) -> RateLimiter:
    return RateLimiter(clock=clock)
