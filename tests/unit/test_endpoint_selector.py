"""Unit tests for endpoint normalization and latency-based selection."""

from __future__ import annotations

import pytest

from allocator_client.endpoints import EndpointSelector, has_port, normalize_endpoint
from allocator_client.errors import NoTracesSucceededError


class TestNormalizeEndpoint:
    def test_appends_default_port(self):
        assert normalize_endpoint("google") == "google:443"

    def test_keeps_existing_port(self):
        assert normalize_endpoint("allocator.example.com:8443") == "allocator.example.com:8443"

    def test_ipv4_without_port(self):
        assert normalize_endpoint("10.0.0.1") == "10.0.0.1:443"

    def test_ipv4_with_port(self):
        assert normalize_endpoint("10.0.0.1:443") == "10.0.0.1:443"

    def test_bracketed_ipv6_with_port(self):
        assert normalize_endpoint("[::1]:8443") == "[::1]:8443"

    def test_bracketed_ipv6_without_port(self):
        assert normalize_endpoint("[::1]") == "[::1]:443"

    def test_bare_ipv6(self):
        assert normalize_endpoint("2001:db8::1") == "[2001:db8::1]:443"

    def test_custom_default_port(self):
        assert normalize_endpoint("host", default_port=9000) == "host:9000"

    def test_has_port(self):
        assert has_port("host:1")
        assert not has_port("host")
        assert not has_port("::1")


class TestSelectWithoutProbing:
    @pytest.mark.asyncio
    async def test_first_candidate_wins(self, fake_probe_factory):
        probe = fake_probe_factory({})
        selector = EndpointSelector(probe)
        chosen = await selector.select({"b-host": "", "a-host": ""})
        assert chosen == "b-host:443"
        assert probe.calls == []

    @pytest.mark.asyncio
    async def test_all_candidates_eligible(self, fake_probe_factory):
        selector = EndpointSelector(fake_probe_factory({}))
        await selector.select({"a": "", "b": ""})
        assert selector.eligible == {"a": "", "b": ""}

    @pytest.mark.asyncio
    async def test_empty_candidates_rejected(self, fake_probe_factory):
        with pytest.raises(ValueError):
            await EndpointSelector(fake_probe_factory({})).select({})


class TestSelectWithProbing:
    @pytest.mark.asyncio
    async def test_unreachable_candidate_pruned(self, fake_probe_factory):
        probe = fake_probe_factory({"google.com": 0.05}, failing={"foo"})
        selector = EndpointSelector(probe)

        chosen = await selector.select({"example": "foo", "google": "google.com"})

        assert chosen == "google:443"
        assert selector.eligible == {"google": "google.com"}

    @pytest.mark.asyncio
    async def test_single_failing_candidate_raises(self, fake_probe_factory):
        probe = fake_probe_factory({}, failing={"foo"})
        with pytest.raises(NoTracesSucceededError, match="no traces succeeded"):
            await EndpointSelector(probe).select({"example": "foo"})

    @pytest.mark.asyncio
    async def test_all_failing_raises(self, fake_probe_factory):
        probe = fake_probe_factory({}, failing={"a.ping", "b.ping"})
        selector = EndpointSelector(probe)
        with pytest.raises(NoTracesSucceededError):
            await selector.select({"a": "a.ping", "b": "b.ping"})
        assert selector.eligible == {}

    @pytest.mark.asyncio
    async def test_fastest_wins(self, fake_probe_factory):
        probe = fake_probe_factory({"us.ping": 0.2, "eu.ping": 0.05, "asia.ping": 0.4})
        chosen = await EndpointSelector(probe).select(
            {"us:443": "us.ping", "eu:8443": "eu.ping", "asia": "asia.ping"}
        )
        assert chosen == "eu:8443"

    @pytest.mark.asyncio
    async def test_tie_goes_to_first_candidate(self, fake_probe_factory):
        probe = fake_probe_factory({"a.ping": 0.1, "b.ping": 0.1})
        chosen = await EndpointSelector(probe).select({"a": "a.ping", "b": "b.ping"})
        assert chosen == "a:443"

    @pytest.mark.asyncio
    async def test_every_target_probed_once(self, fake_probe_factory):
        probe = fake_probe_factory({"a.ping": 0.1, "b.ping": 0.2})
        await EndpointSelector(probe).select({"a": "a.ping", "b": "b.ping"})
        assert sorted(probe.calls) == ["a.ping", "b.ping"]

    @pytest.mark.asyncio
    async def test_candidate_without_target_not_eligible_when_probing(self, fake_probe_factory):
        probe = fake_probe_factory({"b.ping": 0.3})
        selector = EndpointSelector(probe)
        chosen = await selector.select({"a": "", "b": "b.ping"})
        assert chosen == "b:443"
        assert selector.eligible == {"b": "b.ping"}
