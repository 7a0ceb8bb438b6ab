"""
Turn --prefix / --suffix / --regexp into an appId matcher.

Patterns are checked against an allow-list before they reach the regex
engine, so only simple terms over the appId alphabet ever get compiled.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Characters allowed in --prefix and --suffix ('?' is a single-char wildcard)
PREFIX_SUFFIX_CHARS = set("abcdefghijklmnop?")

# Characters allowed in --regexp
REGEXP_CHARS = set("abcdefghijklmnop^$[]()?:|.-")

# Above this many fixed letters a search typically takes more than a day
WARN_NUM_CHARS = 5

_BRACKET_GROUP = re.compile(r"\[[^\]]*\]")
_NON_LETTER = re.compile(r"[^A-Za-z]")


class InvalidSpecError(ValueError):
    """The pattern is empty or uses characters outside the allow-list."""


@dataclass(frozen=True)
class AppIdPattern:
    source: str
    regex: re.Pattern[str]
    num_chars: int

    @property
    def search_space(self) -> int:
        return 16 ** self.num_chars

    @property
    def is_slow(self) -> bool:
        return self.num_chars > WARN_NUM_CHARS

    def __call__(self, app_id: str) -> bool:
        return self.regex.search(app_id) is not None

    def __str__(self) -> str:
        return f"/{self.source}/"


def count_seek_chars(source: str) -> int:
    """
    Estimate how many appId positions a pattern pins down.

    A bracket group counts as one letter; wildcards, anchors and other
    structure count as nothing. Alternation and nested groups are not
    modelled, so the figure is only a rough guide for free-form regexps.
    """
    collapsed = _BRACKET_GROUP.sub("a", source)
    return len(_NON_LETTER.sub("", collapsed))


def _bad_chars(value: str, allowed: set[str]) -> list[str]:
    return [c for c in value if c not in allowed]


def _wildcards(value: str) -> str:
    return value.replace("?", ".")


def compile_pattern(prefix: str = "", suffix: str = "", regexp: str = "") -> AppIdPattern:
    if not prefix and not suffix and not regexp:
        raise InvalidSpecError("Either prefix or suffix or both or regexp must be supplied")

    if regexp:
        # regexp overrides prefix and suffix
        if _bad_chars(regexp, REGEXP_CHARS):
            raise InvalidSpecError(
                f"Regexp may only contain characters ^$[]()?:|.- and letters a-p: '{regexp}'"
            )
        source = regexp
    else:
        for name, value in (("prefix", prefix), ("suffix", suffix)):
            bad = _bad_chars(value, PREFIX_SUFFIX_CHARS)
            if bad:
                raise InvalidSpecError(
                    f"Invalid argument: {name} characters out of range [a-p]: [{','.join(bad)}]"
                )
        if prefix and not suffix:
            source = "^" + _wildcards(prefix)
        elif suffix and not prefix:
            source = _wildcards(suffix) + "$"
        else:
            source = "^" + _wildcards(prefix) + ".*" + _wildcards(suffix) + "$"

    try:
        regex = re.compile(source)
    except re.error as e:
        raise InvalidSpecError(f"Invalid regexp '{source}': {e}") from e

    return AppIdPattern(source=source, regex=regex, num_chars=count_seek_chars(source))
