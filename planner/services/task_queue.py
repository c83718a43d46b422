"""
Batch Task Queue

Runs queued groups of coroutines: every task in a group is started together
and awaited together, and the next group is only dispatched once the previous
one has finished. This caps in-flight requests at the group size without
serializing the whole workload.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class TaskOutcome(Generic[T]):
    """Result of one queued task"""
    item: T
    succeeded: bool
    dispatched: bool = True
    result: Any = None
    error: Optional[BaseException] = None


@dataclass
class TaskGroup(Generic[T]):
    label: str
    items: List[T] = field(default_factory=list)


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """Split items into consecutive slices of at most size elements"""
    if size < 1:
        raise ValueError("Batch size must be at least 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BatchTaskQueue(Generic[T]):
    """
    Sequential queue of concurrent task groups.

    halt_on_failure: once a group finishes with at least one failed task, the
    remaining groups are reported as not dispatched instead of being run.
    """

    def __init__(self, worker: Callable[[T], Awaitable[Any]], batch_size: int = 10,
                 halt_on_failure: bool = True):
        if batch_size < 1:
            raise ValueError("Batch size must be at least 1")
        self.worker = worker
        self.batch_size = batch_size
        self.halt_on_failure = halt_on_failure
        self._groups: List[TaskGroup[T]] = []

    def enqueue(self, label: str, items: Sequence[T]):
        """Queue items as one or more groups of batch_size"""
        for chunk in chunked(items, self.batch_size):
            self._groups.append(TaskGroup(label=label, items=chunk))

    @property
    def pending_groups(self) -> int:
        return len(self._groups)

    async def _run_group(self, group: TaskGroup[T]) -> List[TaskOutcome[T]]:
        results = await asyncio.gather(
            *(self.worker(item) for item in group.items),
            return_exceptions=True
        )
        outcomes = []
        for item, result in zip(group.items, results):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception):
                outcomes.append(TaskOutcome(item=item, succeeded=False, error=result))
            else:
                outcomes.append(TaskOutcome(item=item, succeeded=True, result=result))
        return outcomes

    async def run(self) -> List[TaskOutcome[T]]:
        """Drain the queue; outcomes are returned in enqueue order"""
        outcomes: List[TaskOutcome[T]] = []
        halted = False

        while self._groups:
            group = self._groups.pop(0)
            if halted:
                outcomes.extend(
                    TaskOutcome(item=item, succeeded=False, dispatched=False)
                    for item in group.items
                )
                continue

            group_outcomes = await self._run_group(group)
            outcomes.extend(group_outcomes)

            failures = sum(1 for o in group_outcomes if not o.succeeded)
            if failures:
                logger.warning(f"Batch '{group.label}' finished with {failures}/{len(group.items)} failures")
                if self.halt_on_failure:
                    halted = True

        return outcomes
