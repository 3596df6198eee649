"""Join-all fan-out over independent coroutines.

Every branch settles, successfully or not, before gather_settled returns. A failing
or timed-out branch never cancels its siblings; its exception is captured in
its Outcome instead of propagating.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, Optional

import httpx

from domain_insight.errors import BranchTimeout, ProviderError


@dataclass(frozen=True)
class Outcome:
    name: str
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def describe(self) -> str:
        return describe_failure(self.name, self.error)


async def with_timeout(aw: Awaitable, seconds: float):
    """Await `aw`, cancelling only it once `seconds` elapse"""
    try:
        return await asyncio.wait_for(aw, seconds)
    except asyncio.TimeoutError as e:
        raise BranchTimeout(seconds) from e


async def gather_settled(branches: Dict[str, Awaitable]) -> Dict[str, Outcome]:
    names = list(branches)
    results = await asyncio.gather(*(branches[name] for name in names), return_exceptions=True)
    outcomes = {}
    for name, result in zip(names, results):
        if isinstance(result, BaseException):
            outcomes[name] = Outcome(name, error=result)
        else:
            outcomes[name] = Outcome(name, value=result)
    return outcomes


def describe_failure(name: str, error: BaseException) -> str:
    """Human readable one-liner for the `errors` list of a research result"""
    if isinstance(error, (BranchTimeout, ProviderError)):
        return f"{name}: {error}"
    if isinstance(error, httpx.TimeoutException):
        return f"{name}: request timed out"
    if isinstance(error, asyncio.CancelledError):
        return f"{name}: lookup cancelled"
    if isinstance(error, httpx.HTTPError):
        return f"{name}: {type(error).__name__}: {error}"
    return f"{name}: {str(error) or type(error).__name__}"
