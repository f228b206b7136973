"""Backoff for queries the server is not ready to answer yet.

Servers often answer the first query about a just-opened file before they
have indexed it, returning an empty result. The first query in a file gets
``1 + len(backoff_ms)`` attempts; later queries in the same file get one.
Separately, any query refused with a transient JSON-RPC error ("content
modified") is sent again with the same delays. Other errors propagate on
the first occurrence.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from callscope.core.errors import ProtocolError
from callscope.core.logging import get_logger

if TYPE_CHECKING:
    from callscope.config.models import RetryConfig

CONTENT_MODIFIED = -32801

log = get_logger("resolve.retry")


@dataclass(frozen=True)
class RetryPolicy:
    """Delays between attempts, and which server errors are worth another attempt.

    ``retry_rpc_codes`` are JSON-RPC error codes a server uses for transient
    refusals; "content modified" means the document changed under an
    in-flight request and the same request will succeed once it settles.
    """

    backoff_ms: tuple[int, ...] = (50, 250)
    retry_rpc_codes: frozenset[int] = frozenset({CONTENT_MODIFIED})
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)

    @classmethod
    def from_config(cls, config: RetryConfig) -> RetryPolicy:
        return cls(backoff_ms=tuple(config.backoff_ms), retry_rpc_codes=frozenset(config.retry_rpc_codes))

    def attempts(self, first_in_file: bool) -> int:
        return 1 + len(self.backoff_ms) if first_in_file else 1

    @property
    def max_attempts(self) -> int:
        return 1 + len(self.backoff_ms)

    @property
    def total_delay_s(self) -> float:
        return sum(self.backoff_ms) / 1000

    def retries_error(self, error: ProtocolError) -> bool:
        return error.rpc_code in self.retry_rpc_codes


def is_empty_result(result: object) -> bool:
    if result is None:
        return True
    if isinstance(result, list | tuple | dict):
        return len(result) == 0
    return False


def query_with_backoff[T](
    fn: Callable[[], T],
    *,
    first_in_file: bool,
    policy: RetryPolicy,
) -> tuple[T, int]:
    """Run ``fn`` until it returns a usable result or attempts run out.

    Empty results are retried only for the first query in a file. A
    ``ProtocolError`` whose code is in ``policy.retry_rpc_codes`` is retried
    for any query, with the same delays.

    Returns:
        The last result and the number of attempts made.

    Raises:
        ProtocolError: A non-retryable error, or a retryable one on the last attempt.
    """
    empty_budget = policy.attempts(first_in_file)
    attempt = 0
    while True:
        attempt += 1
        try:
            result = fn()
        except ProtocolError as e:
            if attempt >= policy.max_attempts or not policy.retries_error(e):
                raise
            log.debug("query_retry_error", attempt=attempt + 1, rpc_code=e.rpc_code)
        else:
            if attempt >= empty_budget or not is_empty_result(result):
                return result, attempt
            log.debug("query_retry_empty", attempt=attempt + 1)
        policy.sleep(policy.backoff_ms[attempt - 1] / 1000)
