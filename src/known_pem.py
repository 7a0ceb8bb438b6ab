"""
generate-known-pem: generate RSA key-pairs whose Chromium extension ID has
memorable letters.

Extension IDs only contain the letters a-p. Each run keeps generating
2048-bit keys until the ID matches the requested prefix, suffix or regexp,
then saves the private key as <appId>.pem.

Usage:
    python known_pem.py --prefix=abc??fg
    python known_pem.py --suffix=mnop --n=3
    python known_pem.py --regexp='^abc.*fg$' --no-write
"""

from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

import rsa_keys
from appid_pattern import InvalidSpecError, compile_pattern
from appid_search import (
    DifficultyWarning,
    MatchFound,
    Progress,
    RateEstimate,
    SearchEvent,
    SearchResult,
    SearchStarted,
    search,
)
from rsa_keys import ProviderFault

RED = "\x1b[31;1m"
RESET = "\x1b[0m"


def fail(message: str) -> None:
    print(RED + message + RESET, file=sys.stderr)


def format_elapsed(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class ConsoleProgress:
    """Renders search events to stdout."""

    def __call__(self, event: SearchEvent) -> None:
        if isinstance(event, SearchStarted):
            print(f"Start time: {event.started_at:%a %b %d %Y %H:%M:%S}")
            print(f"Generating random keys until we find one matching {event.pattern}")
        elif isinstance(event, DifficultyWarning):
            print(
                f"Warning: finding more than five characters ({event.num_chars}) "
                "will take longer than a day"
            )
        elif isinstance(event, RateEstimate):
            print(f"Speed: {event.keys_per_second:.3f} keys generated per second")
            print(f"Search space: {event.search_space:,} keys")
            if event.estimated_end is None:
                print("Estimated end time: never")
            else:
                print(f"Estimated end time: {event.estimated_end:%a %b %d %Y %H:%M:%S}")
            print("  Generating...")
        elif isinstance(event, Progress):
            print(
                f"\r  Generated #{event.attempts:>10,} at {event.at:%H:%M %a}: {event.app_id}",
                end="",
                flush=True,
            )
        elif isinstance(event, MatchFound):
            print()
            print(f"Time taken: {format_elapsed(event.elapsed)}")


def write_private_key(result: SearchResult, directory: str = "") -> str:
    """Save the private key as <appId>.pem, readable by the owner only."""
    filename = os.path.join(directory, result.app_id + ".pem")
    fd = os.open(filename, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    # The mode above only applies to new files
    if hasattr(os, "fchmod"):
        os.fchmod(fd, 0o600)
    with os.fdopen(fd, 'wb') as f:
        _ = f.write(result.key_pair.private_pem)
    return filename


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="generate-known-pem",
        description="A tool for generating RSA key-pairs with memorable letters.",
    )
    _ = parser.add_argument("--prefix", type=str, default="",
                            help="Generate PEM with this prefix (? = wildcard), e.g. abc??fg")
    _ = parser.add_argument("--suffix", type=str, default="",
                            help="Generate PEM with this suffix, e.g. mnop")
    _ = parser.add_argument("--regexp", type=str, default="",
                            help="Generate PEM matching this regexp (must be single-quoted), e.g. '^abc.*fg$'")
    _ = parser.add_argument("--n", type=int, default=1,
                            help="Repeat n times")
    _ = parser.add_argument("--no-write", "--noWrite", dest="no_write", action="store_true",
                            help="Print PEM to stdout, do not write file")
    _ = parser.add_argument("--quiet", action="store_true",
                            help="Don't print anything to stdout (unless --no-write specified)")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.prefix and not args.suffix and not args.regexp:
        parser.print_help()
        sys.exit(1)

    quiet: bool = args.quiet
    sink = None if quiet else ConsoleProgress()

    try:
        pattern = compile_pattern(args.prefix, args.suffix, args.regexp)
        for _ in range(max(args.n, 1)):
            result = search(pattern, sink=sink, key_source=rsa_keys.generate_key_pair)
            if not args.no_write:
                filename = write_private_key(result)
                if not quiet:
                    print(f"Private key saved to {filename}")
                    print(f"Public key: {result.public_key}")
            else:
                print()
                print(result.private_key)
                print(f"Public key: {result.public_key}")
                print()
                print(f"AppId: {result.app_id}")
                print()
    except KeyboardInterrupt:
        print("\n\nAborted by user.")
        sys.exit(1)
    except (InvalidSpecError, ProviderFault, OSError) as e:
        fail(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
