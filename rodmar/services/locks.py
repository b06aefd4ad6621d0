"""Serialization of balance writers inside one process

Two kinds of writers touch cached balances:

* a recalculation sweep, which rewrites every balance it covers and must
  run alone
* ledger mutations, which shift the balances of the accounts they touch
  and only need to exclude other writers of those same accounts

`sweep()` waits for in-flight mutations to drain and blocks new ones
until it finishes; mutations arriving while a sweep is queued wait
behind it too. `accounts(...)` waits for any running sweep, then
takes one lock per account in ascending id order so two mutations over
overlapping accounts cannot deadlock. Row locks taken in the database
(SELECT ... FOR UPDATE) cover writers in other processes.
"""
import asyncio
import logging
import weakref
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class BalanceLockManager:

    def __init__(self):
        self._cond = asyncio.Condition()
        self._sweeping = False
        self._sweeps_waiting = 0
        self._active_mutations = 0
        # Entries vanish once no writer holds or waits on the lock
        self._account_locks = weakref.WeakValueDictionary()

    @property
    def sweeping(self) -> bool:
        return self._sweeping

    @property
    def active_mutations(self) -> int:
        return self._active_mutations

    @asynccontextmanager
    async def sweep(self):
        async with self._cond:
            if self._sweeping or self._active_mutations:
                logger.info("Recalculation waiting for running balance writers")
            self._sweeps_waiting += 1
            try:
                await self._cond.wait_for(
                    lambda: not self._sweeping and self._active_mutations == 0
                )
            finally:
                self._sweeps_waiting -= 1
                self._cond.notify_all()
            self._sweeping = True
        try:
            yield
        finally:
            async with self._cond:
                self._sweeping = False
                self._cond.notify_all()

    @asynccontextmanager
    async def accounts(self, *account_ids: int):
        async with self._cond:
            await self._cond.wait_for(
                lambda: not self._sweeping and not self._sweeps_waiting
            )
            self._active_mutations += 1

        acquired = []
        try:
            for account_id in sorted(set(account_ids)):
                lock = self._account_locks.setdefault(account_id, asyncio.Lock())
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            async with self._cond:
                self._active_mutations -= 1
                self._cond.notify_all()


# Shared by every request served by this process
balance_locks = BalanceLockManager()
