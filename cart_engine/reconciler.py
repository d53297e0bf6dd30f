"""
Session Reconciler

Runs once when a guest signs in and once when they sign out, producing one
consistent cart from the device cart and the account cart.
"""

import asyncio
import logging
from typing import Optional

from .client import CartServiceClient, CartServiceError
from .merge import merge_carts
from .results import CartCondition, ReconcileResult, ReconcileSource
from .store import CartStore
from .sync import CartSynchronizer

logger = logging.getLogger(__name__)


class SessionReconciler:
    """
    Moves a cart store between guest and signed-in sessions.

    On login the account cart is fetched, the device cart merged into it,
    and the result written back; from then on the store writes through to
    the Cart Service. On logout the cart is kept on the device and the
    account cart is left as it is for the next login.
    """

    def __init__(
        self,
        store: CartStore,
        client: CartServiceClient,
        sync_interval: Optional[float] = None,
        **sync_options,
    ):
        """
        Args:
            store: The cart store to reconcile
            client: Cart Service client
            sync_interval: Seconds between background retries; None disables the loop
            sync_options: Passed through to CartSynchronizer (max_attempts, backoff_base, ...)
        """
        self.store = store
        self.client = client
        self.sync_interval = sync_interval
        self._sync_options = sync_options
        self._ticker: Optional[asyncio.Task] = None

    async def login(self, token: str) -> ReconcileResult:
        """Merge the device cart into the account cart and go server-authoritative"""
        if self.store.is_authenticated:
            return ReconcileResult(
                accepted=False,
                cart=self.store.cart,
                message="Already signed in",
            )

        synchronizer = CartSynchronizer(self.store, self.client, token, **self._sync_options)

        try:
            remote = await self.client.fetch_cart(token)
        except CartServiceError as e:
            logger.warning(f"Could not fetch account cart at login, keeping device cart: {e}")
            synchronizer.merge_pending = True
            self.store.enter_authenticated(synchronizer)
            self._start_ticker(synchronizer)
            return ReconcileResult(
                accepted=True,
                cart=self.store.cart,
                source=ReconcileSource.LOCAL_FALLBACK,
                conditions=[CartCondition.REMOTE_SYNC_FAILED],
                message="Your cart will be saved to your account once we reconnect",
            )

        merged = merge_carts(self.store.cart, remote)

        self.store.enter_authenticated(synchronizer)
        adopted = self.store.adopt(merged.cart)
        await synchronizer.flush()
        self._start_ticker(synchronizer)

        conditions = list(merged.conditions)
        for condition in adopted.conditions:
            if condition not in conditions:
                conditions.append(condition)
        if synchronizer.failures and CartCondition.REMOTE_SYNC_FAILED not in conditions:
            conditions.append(CartCondition.REMOTE_SYNC_FAILED)

        logger.info(f"Login reconciliation complete at revision {self.store.revision}")
        return ReconcileResult(
            accepted=True,
            cart=self.store.cart,
            source=ReconcileSource.MERGED,
            conditions=conditions,
        )

    async def logout(self, carry_over: bool = True) -> ReconcileResult:
        """
        Return to a guest session.

        With carry_over the current cart is kept on the device; otherwise the
        device snapshot is erased and the guest starts empty. The account
        cart is never touched.
        """
        if not self.store.is_authenticated:
            return ReconcileResult(
                accepted=False,
                cart=self.store.cart,
                message="Not signed in",
            )

        self._stop_ticker()
        synchronizer = self.store.synchronizer
        if synchronizer is not None:
            await synchronizer.flush()
            if synchronizer.pending:
                logger.warning("Signing out with cart changes not yet saved to the account")

        self.store.enter_guest()

        if not carry_over:
            self.store.clear()
            return ReconcileResult(
                accepted=True,
                cart=self.store.cart,
                source=ReconcileSource.EMPTY,
            )

        conditions = []
        if not self.store.snapshot_to_local():
            conditions.append(CartCondition.PERSISTENCE_WRITE_FAILED)

        return ReconcileResult(
            accepted=True,
            cart=self.store.cart,
            source=ReconcileSource.LOCAL_SNAPSHOT,
            conditions=conditions,
        )

    def _start_ticker(self, synchronizer: CartSynchronizer) -> None:
        if self.sync_interval is None:
            return
        self._ticker = asyncio.get_running_loop().create_task(synchronizer.run(self.sync_interval))

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None
