"""Sequential "first success wins" fold shared by the retrieval loops."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

CandidateT = TypeVar("CandidateT")
ResultT = TypeVar("ResultT")


async def first_success(
    candidates: Iterable[CandidateT],
    attempt: Callable[[CandidateT], Awaitable[ResultT]],
    is_success: Callable[[ResultT], bool],
    *,
    attempts: list[ResultT] | None = None,
) -> tuple[ResultT | None, list[ResultT]]:
    """Try candidates in order, one at a time, until one succeeds.

    Every result (successful or not) is appended to `attempts`; pass your own
    list to keep the partial history if the caller is cancelled mid-chain.

    Returns:
        (winning result or None, all results in attempt order)
    """
    history: list[ResultT] = attempts if attempts is not None else []
    for candidate in candidates:
        result = await attempt(candidate)
        history.append(result)
        if is_success(result):
            return result, history
    return None, history
