"""
WalletSession — the single active wallet and its activation state machine.

States:
    Empty ──select──▶ Activating ──ok──▶ Active
                          │                 │
                          └──fail──▶ Failed │
    Active/Failed ──select──▶ Activating    │
    any ──clear──▶ Empty ◀──────────────────┘

Only ``select`` and ``clear`` change state. Presentation code observes the
session through ``subscribe`` and never mutates it.

Security Note:
    Failure reasons are coarse: a wrong password and a tampered record
    produce the same Failed state.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Hashable, Optional, Union

from .exceptions import BackendLoadFailure, DecryptionFailed
from .models import (
    EMPTY,
    Empty,
    Activating,
    Active,
    Failed,
    WalletIdentity,
    WalletSessionState,
)

logger = logging.getLogger("dcoin.session")

REASON_DECRYPTION = "decryption failed"
REASON_BACKEND = "backend error"

Activation = tuple[WalletIdentity, Any]
Activator = Callable[[], Awaitable[Union[Activation, DecryptionFailed]]]
Observer = Callable[[WalletSessionState], None]


class WalletSession:
    """Holds at most one decrypted wallet."""

    def __init__(self):
        self._state: WalletSessionState = EMPTY
        self._observers: list[Observer] = []
        self._pending: Optional[asyncio.Task] = None
        self._pending_key: Optional[Hashable] = None
        self._generation = 0

    def __repr__(self) -> str:
        return f"<WalletSession state={self._state.name}>"

    # --- Properties ---

    @property
    def state(self) -> WalletSessionState:
        return self._state

    @property
    def active(self) -> Optional[WalletIdentity]:
        """Identity of the active wallet, if any."""
        if isinstance(self._state, Active):
            return self._state.identity
        return None

    @property
    def handle(self) -> Any:
        """Backend wallet handle of the active wallet, if any."""
        if isinstance(self._state, Active):
            return self._state.handle
        return None

    @property
    def public_key(self) -> Optional[str]:
        return getattr(self._state, "public_key", None)

    # --- Observation ---

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer`` for state changes.

        Returns:
            Callable removing the observer.
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)
        return unsubscribe

    def _transition(self, state: WalletSessionState) -> None:
        previous = self._state
        self._state = state
        logger.debug("Session %s -> %s", previous.name, state.name)
        for observer in list(self._observers):
            try:
                observer(state)
            except Exception as err:
                logger.error("Session observer %r failed: %s", observer, err)

    # --- Transitions ---

    def clear(self) -> None:
        """Drop the active wallet (or abandon an activation)."""
        self._generation += 1
        self._pending = None
        self._pending_key = None
        if not isinstance(self._state, Empty):
            self._transition(EMPTY)

    async def select(
        self,
        public_key: str,
        activator: Activator,
        request_key: Optional[Hashable] = None,
    ) -> WalletSessionState:
        """Activate the wallet for ``public_key``.

        Args:
            public_key: Wallet to activate.
            activator: Coroutine function that decrypts and reconstructs the
                wallet, returning ``(identity, handle)`` or
                ``DECRYPTION_FAILED``.
            request_key: Identifies the activation inputs. A select for the
                same key and request_key joins the one in flight instead of
                decrypting again; ``None`` never joins.

        Returns:
            The session state once this activation settles. If another
            ``select`` or ``clear`` superseded it meanwhile, the state at
            that point.

        Raises:
            BackendLoadFailure: If the backend could not be loaded; the
                session is left ``Failed``.
        """
        if (
            request_key is not None
            and isinstance(self._state, Activating)
            and self._state.public_key == public_key
            and self._pending is not None
            and self._pending_key == request_key
        ):
            logger.debug("Session already activating key=%s", public_key)
            await asyncio.shield(self._pending)
            return self._state

        self._generation += 1
        generation = self._generation
        self._transition(Activating(public_key=public_key))
        task = asyncio.ensure_future(self._activate(public_key, activator, generation))
        self._pending = task
        self._pending_key = request_key
        try:
            await asyncio.shield(task)
        finally:
            if self._pending is task:
                self._pending = None
                self._pending_key = None
        return self._state

    async def _activate(
        self, public_key: str, activator: Activator, generation: int,
    ) -> None:
        try:
            result = await activator()
        except BackendLoadFailure:
            self._settle(generation, Failed(public_key=public_key, reason=REASON_BACKEND))
            raise
        except Exception as err:
            logger.error("Wallet activation failed for key=%s: %s", public_key, err)
            self._settle(generation, Failed(public_key=public_key, reason=REASON_BACKEND))
            return
        if isinstance(result, DecryptionFailed):
            self._settle(generation, Failed(public_key=public_key, reason=REASON_DECRYPTION))
            return
        identity, handle = result
        if self._settle(generation, Active(identity=identity, handle=handle)):
            logger.info("Wallet active: key=%s", public_key)

    def _settle(self, generation: int, state: WalletSessionState) -> bool:
        if generation != self._generation:
            logger.debug("Discarding stale activation result (%s)", state.name)
            return False
        self._transition(state)
        return True
