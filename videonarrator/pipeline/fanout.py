"""Bounded concurrent fan-out for per-fragment collaborator calls.

Responsibilities:
- Run one action per item on a bounded thread pool.
- Stop enqueueing new items after the first failure while letting in-flight
  calls finish, then report every collected failure.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Generic, TypeVar

_Item = TypeVar("_Item")
_Result = TypeVar("_Result")


@dataclass(slots=True)
class FanOutResult(Generic[_Item, _Result]):
    """Results and failures of one fan-out, both in input order.

    Attributes:
        results: `(item, result)` pairs for every item that completed.
        failures: `(item, exception)` pairs for every item that raised.
        skipped: Items never started because an earlier item failed.
    """

    results: list[tuple[_Item, _Result]] = field(default_factory=list)
    failures: list[tuple[_Item, Exception]] = field(default_factory=list)
    skipped: list[_Item] = field(default_factory=list)


def fan_out(
    items: Sequence[_Item],
    action: Callable[[_Item], _Result],
    *,
    max_workers: int,
) -> FanOutResult[_Item, _Result]:
    """Run `action` over `items` with at most `max_workers` concurrent calls."""

    if max_workers <= 0:
        raise ValueError("`max_workers` must be a positive integer.")

    completed: dict[int, _Result] = {}
    failed: dict[int, Exception] = {}
    next_index = 0
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="fragment") as executor:
        in_flight: dict[Future[_Result], int] = {}

        def submit_available() -> None:
            nonlocal next_index
            while not failed and next_index < len(items) and len(in_flight) < max_workers:
                in_flight[executor.submit(action, items[next_index])] = next_index
                next_index += 1

        submit_available()
        while in_flight:
            done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
            for future in done:
                index = in_flight.pop(future)
                try:
                    completed[index] = future.result()
                except Exception as exc:
                    failed[index] = exc
            submit_available()

    return FanOutResult(
        results=[(items[index], completed[index]) for index in sorted(completed)],
        failures=[(items[index], failed[index]) for index in sorted(failed)],
        skipped=list(items[next_index:]),
    )
