"""
Crypto Backend — lazily loaded key-generation and signing engine.

The backend is loaded once per process on first use. Callers that ask for
it while the load is in flight share the same future; a failed load is
reported to every waiter and the next call starts over.
"""
import asyncio
import inspect
import logging
import importlib
from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable

from ..exceptions import BackendLoadFailure
from ..models import WalletIdentity

logger = logging.getLogger("dcoin.backend")

DEFAULT_BACKEND_MODULE = "dcoin_vault.backend.secp256k1"


@runtime_checkable
class WalletHandle(Protocol):
    """A reconstructed wallet able to sign for its key pair."""

    def public_key(self) -> str:
        ...

    def private_key(self) -> str:
        ...

    def address(self) -> str:
        ...


@runtime_checkable
class WalletBackend(Protocol):
    """Capabilities provided by the cryptographic engine."""

    def generate_wallet(self) -> WalletIdentity:
        ...

    def reconstruct_wallet(self, public_key: str, private_key: str) -> WalletHandle:
        ...

    async def sign_and_submit(
        self, to: str, from_wallet: WalletHandle, amount: float,
    ) -> Any:
        ...


BackendLoader = Callable[[], Awaitable[WalletBackend]]


def module_loader(module_name: str, **options: Any) -> BackendLoader:
    """Build a loader that imports ``module_name`` and calls its factory.

    The module must expose ``load_backend(**options)``, returning a backend
    or an awaitable resolving to one. The import runs in a worker thread.
    """
    async def _load() -> WalletBackend:
        module = await asyncio.to_thread(importlib.import_module, module_name)
        factory = getattr(module, "load_backend", None)
        if factory is None:
            raise AttributeError(
                f"Backend module {module_name} has no load_backend()"
            )
        backend = factory(**options)
        if inspect.isawaitable(backend):
            backend = await backend
        return backend
    return _load


class CryptoBackendHandle:
    """Memoized, exactly-once initialization of a wallet backend.

    Args:
        loader: Coroutine function producing the backend.
    """

    def __init__(self, loader: BackendLoader):
        self._loader = loader
        self._future: Optional[asyncio.Future] = None
        self._backend: Optional[WalletBackend] = None
        self._task: Optional[asyncio.Task] = None
        self._loads = 0

    @classmethod
    def from_module(cls, module_name: str, **options: Any) -> "CryptoBackendHandle":
        return cls(module_loader(module_name, **options))

    @property
    def loader(self) -> BackendLoader:
        return self._loader

    @property
    def loaded(self) -> bool:
        return self._backend is not None

    @property
    def load_attempts(self) -> int:
        """Number of times the loader has been started."""
        return self._loads

    async def get_backend(self) -> WalletBackend:
        """Return the backend, loading it on first use.

        Raises:
            BackendLoadFailure: If loading fails. The failure is delivered to
                every concurrent caller; later calls retry the load.
        """
        if self._backend is not None:
            return self._backend
        if self._future is None:
            loop = asyncio.get_running_loop()
            self._future = loop.create_future()
            self._loads += 1
            self._task = loop.create_task(self._run_loader(self._future))
        # shield: a cancelled waiter must not cancel the shared load
        return await asyncio.shield(self._future)

    async def _run_loader(self, future: asyncio.Future) -> None:
        logger.debug("Loading wallet backend (attempt %d)", self._loads)
        try:
            backend = await self._loader()
        except Exception as err:
            logger.error("Wallet backend failed to load: %s", err)
            self._future = None
            failure = BackendLoadFailure(f"Wallet backend failed to load: {err}")
            failure.__cause__ = err
            future.set_exception(failure)
            # mark retrieved for the case where every waiter was cancelled
            future.exception()
            return
        self._backend = backend
        future.set_result(backend)
        logger.info("Wallet backend loaded: %s", type(backend).__name__)


_shared_handle: Optional[CryptoBackendHandle] = None


def get_backend_handle(
    loader: Optional[BackendLoader] = None,
) -> CryptoBackendHandle:
    """Return the process-wide backend handle, creating it on first call.

    Args:
        loader: Loader used when the handle is first created. Defaults to
            the bundled secp256k1 backend.

    Raises:
        RuntimeError: If a different loader is passed once the handle
            exists.
    """
    global _shared_handle
    if _shared_handle is not None:
        if loader is not None and loader is not _shared_handle.loader:
            raise RuntimeError(
                "Backend handle already created with a different loader; "
                "call reset_backend_handle() first"
            )
    else:
        _shared_handle = CryptoBackendHandle(
            loader or module_loader(DEFAULT_BACKEND_MODULE)
        )
    return _shared_handle


def reset_backend_handle() -> None:
    """Forget the process-wide handle. Intended for tests."""
    global _shared_handle
    _shared_handle = None


__all__ = [
    "WalletHandle",
    "WalletBackend",
    "BackendLoader",
    "CryptoBackendHandle",
    "module_loader",
    "get_backend_handle",
    "reset_backend_handle",
]
