"""Wait-for-all completion of independent asynchronous operations."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Dict, Hashable, Mapping


class JoinError(Exception):
    """One or more joined operations failed.

    ``failures`` maps the key of every failed operation to the exception it
    raised; operations that succeeded are not listed.
    """

    def __init__(self, failures: Mapping[Hashable, BaseException]) -> None:
        self.failures: Dict[Hashable, BaseException] = dict(failures)
        keys = ", ".join(sorted(str(key) for key in self.failures))
        super().__init__(f"{len(self.failures)} operation(s) failed: {keys}")


async def join(operations: Mapping[Hashable, Awaitable[object]]) -> None:
    """Run ``operations`` concurrently and fail if any of them failed.

    Every operation runs to completion even when a sibling fails first. An
    empty mapping succeeds immediately.
    """
    if not operations:
        return

    keys = list(operations)
    results = await asyncio.gather(
        *(operations[key] for key in keys), return_exceptions=True
    )
    failures = {
        key: result
        for key, result in zip(keys, results)
        if isinstance(result, BaseException)
    }
    if failures:
        raise JoinError(failures)
