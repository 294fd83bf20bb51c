import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal

logger = logging.getLogger(__name__)

Transaction = dict[str, Any]
Fetch = Callable[[str], Awaitable[Transaction]]


@dataclass
class TransactionLookup:
    data: Transaction
    source: Literal["cache", "remote"]


class TransactionCache:
    """
    In-memory map of reference to transaction data.

    Entries never expire: once a reference is cached it is served from
    memory for the life of the process. Concurrent misses for the same
    reference share a single remote fetch.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Transaction] = {}
        self._in_flight: dict[str, asyncio.Task[Transaction]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, reference: str) -> Transaction | None:
        return self._entries.get(reference)

    def put(self, reference: str, data: Transaction) -> None:
        self._entries[reference] = data

    def items(self) -> list[tuple[str, Transaction]]:
        return list(self._entries.items())

    async def lookup(self, reference: str, fetch: Fetch) -> TransactionLookup:
        cached = self.get(reference)
        if cached is not None:
            logger.info("Transaction %s served from cache", reference)
            return TransactionLookup(data=cached, source="cache")

        task = self._in_flight.get(reference)
        if task is None:
            task = asyncio.create_task(fetch(reference))
            self._in_flight[reference] = task
            task.add_done_callback(lambda done: self._settle(reference, done))
        else:
            logger.debug("Joining in-flight lookup for %s", reference)

        # shield: one cancelled caller must not cancel the fetch for the others
        data = await asyncio.shield(task)
        logger.info("Transaction %s fetched from ePayco", reference)
        return TransactionLookup(data=data, source="remote")

    def _settle(self, reference: str, task: asyncio.Task[Transaction]) -> None:
        # runs even when every waiter was cancelled, so a finished fetch is never lost
        self._in_flight.pop(reference, None)
        if task.cancelled() or task.exception() is not None:
            return
        self._entries[reference] = task.result()
