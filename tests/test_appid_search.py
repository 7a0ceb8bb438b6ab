#!/usr/bin/env python3
"""
Tests for the search loop, driven by a deterministic stub key source.
"""

import itertools
import os
import re
import sys
from datetime import datetime, timedelta

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import rsa_keys
from appid import derive_app_id
from appid_pattern import AppIdPattern, compile_pattern
from appid_search import (
    PROGRESS_AFTER,
    PROGRESS_INTERVAL,
    RATE_SAMPLE_ATTEMPTS,
    Attempt,
    DifficultyWarning,
    MatchFound,
    Progress,
    RateEstimate,
    SearchStarted,
    iter_attempts,
    search,
)
from rsa_keys import KeyPair, ProviderFault

NOW = datetime(2026, 1, 1, 12, 0, 0)


def stub_keys(count: int = 60):
    return [
        KeyPair(private_pem=f"private-{i}".encode('ascii'), public_der=f"public-{i}".encode('ascii'))
        for i in range(count)
    ]


def cycling_source(keys):
    it = itertools.cycle(keys)
    return lambda: next(it)


def exact(app_id: str, num_chars: int = 32) -> AppIdPattern:
    """Pattern matching one appId only, with a chosen difficulty."""
    return AppIdPattern(source=f"^{app_id}$", regex=re.compile(f"^{app_id}$"), num_chars=num_chars)


class FakeClock:
    """Advances by `step` seconds every time it is read."""

    def __init__(self, step: float = 0.5):
        self.t = 0.0
        self.step = step

    def __call__(self) -> float:
        value = self.t
        self.t += self.step
        return value


@pytest.fixture
def keys():
    return stub_keys()


@pytest.fixture
def app_ids(keys):
    return [derive_app_id(k.public_der) for k in keys]


class TestIterAttempts:

    def test_numbering_and_derivation(self, keys, app_ids):
        attempts = list(itertools.islice(iter_attempts(cycling_source(keys)), 3))
        assert [a.number for a in attempts] == [1, 2, 3]
        assert [a.key_pair for a in attempts] == keys[:3]
        assert [a.app_id for a in attempts] == app_ids[:3]

    def test_lazy(self):
        calls = []

        def source():
            calls.append(1)
            return KeyPair(b"p", b"q")

        stream = iter_attempts(source)
        assert calls == []
        next(stream)
        assert len(calls) == 1


class TestSearch:

    def test_stops_at_expected_attempt(self, keys, app_ids):
        pattern = compile_pattern(regexp=f"^{app_ids[7]}$")
        result = search(pattern, key_source=cycling_source(keys))
        assert result.attempts == 8
        assert result.app_id == app_ids[7]
        assert result.key_pair is keys[7]
        assert result.private_key == "private-7"

    def test_accepts_injected_stream(self, keys, app_ids):
        stream = [Attempt(i + 1, k, a) for i, (k, a) in enumerate(zip(keys, app_ids))]
        result = search(exact(app_ids[3]), attempts=stream)
        assert result.attempts == 4
        assert result.key_pair is keys[3]

    def test_stream_exhausted(self, keys, app_ids):
        stream = [Attempt(i + 1, k, a) for i, (k, a) in enumerate(zip(keys[:5], app_ids[:5]))]
        with pytest.raises(RuntimeError):
            search(exact(app_ids[10]), attempts=stream)

    def test_stream_and_source_together(self, keys, app_ids):
        stream = [Attempt(1, keys[0], app_ids[0])]
        with pytest.raises(ValueError):
            search(exact(app_ids[0]), attempts=stream, key_source=cycling_source(keys))

    def test_provider_fault_propagates(self):
        calls = []

        def broken():
            calls.append(1)
            raise ProviderFault("no entropy")

        with pytest.raises(ProviderFault):
            search(compile_pattern("abc"), key_source=broken)
        # never retried
        assert len(calls) == 1

    def test_elapsed(self, keys, app_ids):
        result = search(exact(app_ids[0]), key_source=cycling_source(keys), clock=FakeClock(0.5))
        # start read, then one read on match
        assert result.elapsed == 0.5


class TestProgressEvents:

    def test_event_sequence(self, keys, app_ids):
        target = 45
        events = []
        search(
            exact(app_ids[target], num_chars=3),
            key_source=cycling_source(keys),
            sink=events.append,
            clock=FakeClock(0.5),
            now=lambda: NOW,
        )

        assert isinstance(events[0], SearchStarted)
        assert events[0].search_space == 4096
        assert events[0].started_at == NOW

        rates = [e for e in events if isinstance(e, RateEstimate)]
        assert len(rates) == 1
        rate = rates[0]
        assert rate.attempts == RATE_SAMPLE_ATTEMPTS
        assert rate.elapsed == 0.5
        assert rate.keys_per_second == RATE_SAMPLE_ATTEMPTS / 0.5
        assert rate.estimated_end == NOW + timedelta(seconds=4096 / rate.keys_per_second)

        progress = [e for e in events if isinstance(e, Progress)]
        expected = [n for n in range(1, target + 2) if n > PROGRESS_AFTER and n % PROGRESS_INTERVAL == 0]
        assert [p.attempts for p in progress] == expected
        assert [p.app_id for p in progress] == [app_ids[n - 1] for n in expected]

        assert isinstance(events[-1], MatchFound)
        assert events[-1].attempts == target + 1
        assert events[-1].app_id == app_ids[target]

    def test_no_rate_before_sample(self, keys, app_ids):
        events = []
        search(exact(app_ids[2], 3), key_source=cycling_source(keys), sink=events.append)
        assert not any(isinstance(e, (RateEstimate, Progress)) for e in events)
        assert [type(e) for e in events] == [SearchStarted, MatchFound]

    def test_difficulty_warning(self, keys, app_ids):
        events = []
        search(exact(app_ids[0], num_chars=6), key_source=cycling_source(keys), sink=events.append)
        assert DifficultyWarning(6) in events

    def test_estimate_beyond_calendar(self, keys, app_ids):
        events = []
        search(exact(app_ids[30], num_chars=32), key_source=cycling_source(keys), sink=events.append)
        rate = next(e for e in events if isinstance(e, RateEstimate))
        assert rate.estimated_end is None

    def test_quiet_matches_verbose(self, keys, app_ids, capsys):
        pattern = exact(app_ids[41], num_chars=3)

        events = []
        loud = search(pattern, key_source=cycling_source(keys), sink=events.append)
        quiet = search(pattern, key_source=cycling_source(keys), sink=None)

        assert events
        assert quiet.attempts == loud.attempts == 42
        assert quiet.app_id == loud.app_id
        assert quiet.key_pair is loud.key_pair
        assert capsys.readouterr().out == ""


class TestProviderWrapping:

    def test_backend_error_becomes_provider_fault(self, monkeypatch):
        def boom(**kwargs):
            raise ValueError("key_size too small")

        monkeypatch.setattr(rsa_keys.rsa, "generate_private_key", boom)
        with pytest.raises(ProviderFault) as excinfo:
            rsa_keys.generate_key_pair()
        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_serialization_error_becomes_provider_fault(self, monkeypatch):
        class DeadKey:
            def private_bytes(self, **kwargs):
                raise RuntimeError("backend died")

        monkeypatch.setattr(rsa_keys.rsa, "generate_private_key", lambda **kwargs: DeadKey())
        with pytest.raises(ProviderFault) as excinfo:
            rsa_keys.generate_key_pair()
        assert "backend died" in str(excinfo.value)
        assert isinstance(excinfo.value.__cause__, RuntimeError)
