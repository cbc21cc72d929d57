"""
Container liveness probe.

Exits 0 if the heartbeat file holds a Unix-ms timestamp younger than
--max-age-ms, 1 otherwise (missing, unreadable, garbage or stale).

    python tools/check_heartbeat.py --path /tmp/playlist-bot-heartbeat
"""
import argparse
import os
import sys
import time
from pathlib import Path

DEFAULT_PATH = os.environ.get("HEARTBEAT_PATH", "/tmp/playlist-bot-heartbeat")
DEFAULT_MAX_AGE_MS = 60_000


def heartbeat_age_ms(path: str, now_ms: int) -> int | None:
    """Age of the heartbeat in ms, or None if it cannot be read."""
    try:
        written_ms = int(Path(path).read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return None
    return now_ms - written_ms


def is_fresh(path: str, max_age_ms: int, now_ms: int | None = None) -> bool:
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    age = heartbeat_age_ms(path, now_ms)
    return age is not None and 0 <= age <= max_age_ms


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--path", default=DEFAULT_PATH)
    parser.add_argument("--max-age-ms", type=int, default=DEFAULT_MAX_AGE_MS)
    args = parser.parse_args(argv)

    if is_fresh(args.path, args.max_age_ms):
        return 0
    print(f"heartbeat stale or missing: {args.path}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
