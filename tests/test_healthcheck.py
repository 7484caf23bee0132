"""Unit tests for council_mcp/healthcheck.py -- no real API calls."""

from council_mcp.healthcheck import run_health_checks
from council_mcp.models import GatewayResult, ModelSpec
from tests.conftest import FakeGateway


async def test_all_participants_pass(three_participants):
    results = await run_health_checks(FakeGateway(), three_participants)
    assert results == {"A": (True, ""), "B": (True, ""), "C": (True, "")}


async def test_one_participant_fails(three_participants):
    gateway = FakeGateway(replies={"B": GatewayResult(403, "Forbidden")})
    results = await run_health_checks(gateway, three_participants)

    assert results["A"] == (True, "")
    ok, err = results["B"]
    assert ok is False
    assert "403" in err
    assert "Forbidden" in err


async def test_missing_key_reported(three_participants):
    specs = [ModelSpec(id="g", provider="gemini", model="m")]
    gateway = FakeGateway(replies={"g": GatewayResult(2, "[g] missing api_key for gemini.")})
    results = await run_health_checks(gateway, specs)
    assert results["g"][0] is False
    assert "missing api_key" in results["g"][1]


async def test_ping_uses_short_limits(three_participants):
    gateway = FakeGateway()
    await run_health_checks(gateway, three_participants)
    for _, prompt, limits in gateway.calls:
        assert prompt == "Reply with the word OK only."
        assert limits.timeout_sec == 15


async def test_empty_participants():
    assert await run_health_checks(FakeGateway(), []) == {}


class _RaisingFor(FakeGateway):
    def __init__(self, bad_id: str) -> None:
        super().__init__()
        self.bad_id = bad_id

    async def call(self, spec, prompt, limits):
        if spec.id == self.bad_id:
            raise UnicodeEncodeError("ascii", "kéy", 1, 2, "ordinal not in range(128)")
        return await super().call(spec, prompt, limits)


async def test_raising_participant_is_reported_and_others_still_checked(three_participants):
    results = await run_health_checks(_RaisingFor("B"), three_participants)

    assert results["A"] == (True, "")
    assert results["C"] == (True, "")
    ok, err = results["B"]
    assert ok is False
    assert "ascii" in err
