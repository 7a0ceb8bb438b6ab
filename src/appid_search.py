"""
Generate key-pairs until one has an appId matching the pattern.

The search is a consumer of an endless stream of attempts. Progress is
reported as event objects to an optional sink; with no sink the search is
silent but counts and times itself all the same.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Iterator, Optional, Union

import rsa_keys
from appid import derive_app_id
from appid_pattern import AppIdPattern
from rsa_keys import KeyPair

# Attempts made before the first speed measurement
RATE_SAMPLE_ATTEMPTS = 25
# Progress lines start after this many attempts...
PROGRESS_AFTER = 30
# ...and repeat every this many
PROGRESS_INTERVAL = 10


@dataclass(frozen=True)
class Attempt:
    number: int
    key_pair: KeyPair
    app_id: str


@dataclass(frozen=True)
class SearchResult:
    app_id: str
    key_pair: KeyPair
    attempts: int
    elapsed: float

    @property
    def private_key(self) -> str:
        return self.key_pair.private_pem.decode('ascii')

    @property
    def public_key(self) -> str:
        return rsa_keys.public_key_display(self.key_pair.public_der)


@dataclass(frozen=True)
class SearchStarted:
    pattern: AppIdPattern
    num_chars: int
    search_space: int
    started_at: datetime


@dataclass(frozen=True)
class DifficultyWarning:
    num_chars: int


@dataclass(frozen=True)
class RateEstimate:
    attempts: int
    elapsed: float
    keys_per_second: float
    search_space: int
    estimated_end: Optional[datetime]


@dataclass(frozen=True)
class Progress:
    attempts: int
    elapsed: float
    app_id: str
    at: datetime


@dataclass(frozen=True)
class MatchFound:
    attempts: int
    elapsed: float
    app_id: str


SearchEvent = Union[SearchStarted, DifficultyWarning, RateEstimate, Progress, MatchFound]
ProgressSink = Callable[[SearchEvent], None]
KeySource = Callable[[], KeyPair]


def iter_attempts(key_source: KeySource) -> Iterator[Attempt]:
    """Endless stream of fresh key-pairs with their appIds."""
    number = 0
    while True:
        number += 1
        key_pair = key_source()
        yield Attempt(number, key_pair, derive_app_id(key_pair.public_der))


def search(
    pattern: AppIdPattern,
    attempts: Optional[Iterable[Attempt]] = None,
    sink: Optional[ProgressSink] = None,
    key_source: Optional[KeySource] = None,
    clock: Callable[[], float] = time.monotonic,
    now: Callable[[], datetime] = datetime.now,
) -> SearchResult:
    """
    Run until an attempt's appId matches `pattern` and return it.

    There is no attempt limit; a valid pattern is always satisfiable
    eventually. Errors from the key source propagate as-is.

    Pass either a ready-made `attempts` stream or a `key_source` to build
    one from, not both.
    """
    if attempts is not None and key_source is not None:
        raise ValueError("search() takes attempts or key_source, not both")
    if attempts is None:
        attempts = iter_attempts(key_source or rsa_keys.generate_key_pair)

    def emit(event: SearchEvent) -> None:
        if sink is not None:
            sink(event)

    emit(SearchStarted(pattern, pattern.num_chars, pattern.search_space, now()))
    if pattern.is_slow:
        emit(DifficultyWarning(pattern.num_chars))

    start = clock()
    count = 0
    for attempt in attempts:
        count += 1

        if count == RATE_SAMPLE_ATTEMPTS:
            elapsed = clock() - start
            # A clock that has not ticked yet counts as one microsecond
            keys_per_second = count / max(elapsed, 1e-6)
            try:
                estimated_end = now() + timedelta(seconds=pattern.search_space / keys_per_second)
            except OverflowError:
                estimated_end = None  # past datetime.max
            emit(RateEstimate(count, elapsed, keys_per_second, pattern.search_space, estimated_end))

        if count > PROGRESS_AFTER and count % PROGRESS_INTERVAL == 0:
            emit(Progress(count, clock() - start, attempt.app_id, now()))

        if pattern(attempt.app_id):
            elapsed = clock() - start
            emit(MatchFound(count, elapsed, attempt.app_id))
            return SearchResult(attempt.app_id, attempt.key_pair, count, elapsed)

    raise RuntimeError(f"Attempt stream ended after {count} attempts without a match")
