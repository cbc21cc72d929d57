"""
Reconnect backoff policy.

Purpose:
- Centralize the reconnect delay rule
- Keep the supervisor loop free of arithmetic
- Allow tests to assert the exact delay sequence

This module contains NO timers, NO async, NO side effects.
"""
from __future__ import annotations

from dataclasses import dataclass

from constants import DEFAULT_RECONNECT_BASE_MS, DEFAULT_RECONNECT_MAX_MS


# =============================================================================
# Retry State
# =============================================================================

@dataclass(frozen=True)
class RetryAttempt:
    """
    Immutable consecutive-failure counter.

    Semantics:
    - attempt == 0: the previous attempt succeeded (or none was made yet).
    - attempt >= 1: that many consecutive connection failures or
      dropped sessions since the last successful connect.
    """
    attempt: int


def next_attempt(current: RetryAttempt) -> RetryAttempt:
    """Return a new RetryAttempt with attempt incremented by 1."""
    return RetryAttempt(attempt=current.attempt + 1)


def reset_attempt() -> RetryAttempt:
    """Returns a fresh retry attempt counter."""
    return RetryAttempt(attempt=0)


# =============================================================================
# Delay Calculation
# =============================================================================

def reconnect_delay_ms(
    attempt: RetryAttempt,
    *,
    base_ms: int = DEFAULT_RECONNECT_BASE_MS,
    max_ms: int = DEFAULT_RECONNECT_MAX_MS,
) -> int:
    """
    Delay before the next connection attempt.

    delay = min(base_ms * 2**attempt, max_ms), where attempt counts the
    consecutive failures including the one that just happened. The
    first failure waits 2 * base_ms; attempt 0 (a session that connected
    and later dropped) waits exactly base_ms.
    """
    if base_ms <= 0 or max_ms <= 0:
        raise ValueError("backoff bounds must be > 0")

    n = max(0, attempt.attempt)
    # Stop doubling once past the cap so huge attempt counts stay cheap.
    delay = base_ms
    for _ in range(n):
        delay *= 2
        if delay >= max_ms:
            return max_ms
    return min(delay, max_ms)
