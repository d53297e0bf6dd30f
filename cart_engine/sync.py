"""
Cart write-through

Pushes the signed-in shopper's cart to the Cart Service after every change.
Pushes are serialized, so the service never receives an older snapshot
after a newer one, and an acknowledgement for a revision the store has
already moved past is dropped. Failed pushes back off exponentially and
give up automatic retries after a bounded number of attempts.
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Callable, Optional

from .client import CartServiceClient, CartServiceError
from .config import settings
from .merge import merge_carts

if TYPE_CHECKING:
    from .store import CartStore

logger = logging.getLogger(__name__)

SYNC_WARNING = "Your cart may not be saved to your account"


class CartSynchronizer:
    """Write-through queue for one signed-in session"""

    def __init__(
        self,
        store: "CartStore",
        client: CartServiceClient,
        token: str,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_max: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        merge_pending: bool = False,
    ):
        self.store = store
        self.client = client
        self.token = token
        self.max_attempts = settings.sync_max_attempts if max_attempts is None else max_attempts
        self.backoff_base = settings.sync_backoff_base if backoff_base is None else backoff_base
        self.backoff_max = settings.sync_backoff_max if backoff_max is None else backoff_max
        self.clock = clock

        # Set when the account cart was never fetched, so it must be merged before pushing
        self.merge_pending = merge_pending
        self.clear_local_on_success = True

        self.failures = 0
        self.next_retry_at: Optional[float] = None
        self.synced_revision: Optional[int] = None
        self.warning: Optional[str] = None

        self._task: Optional[asyncio.Task] = None
        self._dirty = False

    @property
    def pending(self) -> bool:
        """Whether the service is behind the local cart"""
        return self.merge_pending or self.synced_revision != self.store.revision

    @property
    def exhausted(self) -> bool:
        return self.failures > 0 and self.failures >= self.max_attempts

    @property
    def keeps_local_copy(self) -> bool:
        """Whether the device snapshot is still the only durable copy of the cart"""
        return self.merge_pending or self.clear_local_on_success or self.failures > 0

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after the given consecutive failure"""
        return min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)

    def schedule(self) -> None:
        """Push the latest cart as soon as the current push (if any) is done"""
        if self.in_flight:
            self._dirty = True
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, write-through left for the next tick")
            return

        self._task = loop.create_task(self._drain())

    async def flush(self) -> None:
        """Wait until no push is in flight"""
        while self.in_flight:
            await asyncio.wait({self._task})

    async def tick(self) -> bool:
        """Retry a pending push once its backoff has elapsed. True if one ran."""
        if self.in_flight or not self.pending or self.exhausted:
            return False
        if self.next_retry_at is not None and self.clock() < self.next_retry_at:
            return False

        self.schedule()
        await self.flush()
        return True

    async def run(self, interval: Optional[float] = None) -> None:
        """Periodic background retry loop; cancel the task to stop it"""
        interval = interval or settings.sync_interval
        while True:
            await asyncio.sleep(interval)
            await self.tick()

    async def _drain(self) -> None:
        while True:
            self._dirty = False
            pushed = await self._push()
            if not pushed or not self._dirty:
                return

    async def _push(self) -> bool:
        try:
            if self.merge_pending:
                remote = await self.client.fetch_cart(self.token)
                merged = merge_carts(self.store.cart, remote)
                self.merge_pending = False
                self.store.adopt(merged.cart, write_through=False)
                logger.info("Merged account cart after a delayed fetch")

            revision = self.store.revision
            await self.client.save_cart(self.token, self.store.cart)
        except CartServiceError as e:
            self._record_failure(e)
            return False

        if revision < self.store.revision:
            logger.debug(
                f"Dropping stale write-through ack for revision {revision}, "
                f"local cart is at {self.store.revision}"
            )
            return True

        self._record_success(revision)
        return True

    def _record_failure(self, error: Exception) -> None:
        self.failures += 1
        delay = self.backoff_delay(self.failures)

        # The device snapshot is the only durable copy until a push succeeds
        if not self.store.snapshot_to_local():
            logger.warning(f"Could not keep a local copy of unsynced revision {self.store.revision}")
        self.next_retry_at = self.clock() + delay

        if self.exhausted:
            if self.warning is None:
                logger.warning(
                    f"Cart write-through failed {self.failures} times, "
                    f"stopping automatic retries: {error}"
                )
            self.warning = SYNC_WARNING
        else:
            logger.info(
                f"Cart write-through failed (attempt {self.failures}/{self.max_attempts}), "
                f"retrying in {delay:.1f}s: {error}"
            )

    def _record_success(self, revision: int) -> None:
        held_local_copy = self.keeps_local_copy
        if self.failures:
            logger.info(f"Cart write-through recovered after {self.failures} failures")

        self.failures = 0
        self.next_retry_at = None
        self.warning = None
        self.synced_revision = revision

        if held_local_copy:
            self.store.discard_local_snapshot()
            self.clear_local_on_success = False
