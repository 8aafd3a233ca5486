"""
Shutdown Coordinator

Process-level registry of disposables (FlareSolverr clients). OS signal
handlers and the atexit hook are installed once per coordinator, no matter
how many clients register or whether an event loop is running yet, and
every registered client is closed exactly once when the process ends.

Applications that own their shutdown sequence should build their own
coordinator, inject it into clients and await ``shutdown()`` themselves.
"""

import asyncio
import atexit
import logging
import signal
from typing import Protocol

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class Disposable(Protocol):
    """Anything with an async, idempotent close()."""

    async def close(self) -> None: ...


class ShutdownCoordinator:
    """Closes registered disposables on exit, SIGINT and SIGTERM."""

    def __init__(self, install_hooks: bool = True) -> None:
        """
        Args:
            install_hooks: Install atexit/signal hooks on first register().
                Disable in tests and in apps that call shutdown() themselves.
        """
        self._install_hooks = install_hooks
        self._disposables: list[Disposable] = []
        self._atexit_installed = False
        self._signal_mode: str | None = None
        self._signal_received = False
        self._pending_signal: signal.Signals | None = None
        self._shutdown_task: asyncio.Task | None = None

    @property
    def disposables(self) -> list[Disposable]:
        return list(self._disposables)

    def register(self, disposable: Disposable) -> None:
        """Add a disposable; registering the same object twice is a no-op."""
        if any(d is disposable for d in self._disposables):
            return
        self._disposables.append(disposable)
        if self._install_hooks:
            self._ensure_hooks()

    def unregister(self, disposable: Disposable) -> None:
        self._disposables = [d for d in self._disposables if d is not disposable]

    async def shutdown(self) -> None:
        """Close every registered disposable once. Errors are logged, not raised."""
        pending, self._disposables = self._disposables, []
        if not pending:
            return

        logger.info(f"Shutdown: closing {len(pending)} FlareSolverr client(s)...")
        for index, disposable in enumerate(pending):
            try:
                await disposable.close()
            except asyncio.CancelledError:
                # Loop is being torn down; leave the rest for the atexit hook
                self._disposables = pending[index:] + self._disposables
                raise
            except Exception as e:
                logger.error(f"Shutdown: error closing {disposable!r}: {e}")
        logger.info("Shutdown complete")

    # ============================================
    # Hooks
    # ============================================

    @property
    def signal_mode(self) -> str | None:
        """``"loop"``, ``"process"`` or None when no handler is installed."""
        return self._signal_mode

    def _ensure_hooks(self) -> None:
        if not self._atexit_installed:
            atexit.register(self._run_at_exit)
            self._atexit_installed = True

        if self._signal_mode is None:
            self.install_signal_handlers()

    def install_signal_handlers(self) -> bool:
        """Hook SIGINT/SIGTERM.

        Uses ``loop.add_signal_handler`` when called under a running loop.
        Otherwise installs process-level handlers with ``signal.signal``;
        those hand the signal to whatever loop is running when it arrives,
        or run the shutdown themselves when none is.

        Returns False when neither could be installed (e.g. outside the main
        thread, or on a platform without signal support).
        """
        if self._signal_mode is not None:
            return True

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            try:
                for sig in SHUTDOWN_SIGNALS:
                    loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                logger.debug(f"Loop signal handlers unavailable: {e}")
            else:
                self._signal_mode = "loop"
                return True

        try:
            for sig in SHUTDOWN_SIGNALS:
                signal.signal(sig, self._on_process_signal)
        except (ValueError, OSError) as e:
            logger.debug(f"Signal handlers unavailable: {e}")
            return False

        self._signal_mode = "process"
        return True

    def _on_process_signal(self, signum: int, frame: object) -> None:
        sig = signal.Signals(signum)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            loop.call_soon_threadsafe(self._on_signal, sig)
            return

        if self._signal_received:
            return
        self._signal_received = True

        logger.info(f"Received {sig.name}, destroying FlareSolverr sessions...")
        try:
            asyncio.run(self.shutdown())
        except Exception as e:
            logger.error(f"Shutdown on {sig.name} failed: {e}")
        self._restore_and_reraise(None, sig)

    def _on_signal(self, sig: signal.Signals) -> None:
        if self._signal_received:
            return
        self._signal_received = True

        logger.info(f"Received {sig.name}, destroying FlareSolverr sessions...")
        loop = asyncio.get_running_loop()
        self._shutdown_task = loop.create_task(self.shutdown())
        self._shutdown_task.add_done_callback(lambda task: self._reraise(loop, sig, task))

    def _reraise(self, loop: asyncio.AbstractEventLoop, sig: signal.Signals, task: asyncio.Task) -> None:
        if task.cancelled():
            # Loop closed under us; the atexit hook closes what is left
            logger.warning(f"Shutdown on {sig.name} was cancelled")
            self._pending_signal = sig
            return
        self._restore_and_reraise(loop, sig)

    def _restore_and_reraise(self, loop: asyncio.AbstractEventLoop | None, sig: signal.Signals) -> None:
        # Restore default disposition so the process exits as it normally would
        for s in SHUTDOWN_SIGNALS:
            if self._signal_mode == "loop" and loop is not None:
                loop.remove_signal_handler(s)
            else:
                signal.signal(s, signal.SIG_DFL)
        self._signal_mode = None
        signal.raise_signal(sig)

    def _run_at_exit(self) -> None:
        if self._disposables:
            try:
                asyncio.run(self.shutdown())
            except Exception as e:
                logger.error(f"Shutdown at exit failed: {e}")

        if self._pending_signal is not None:
            sig, self._pending_signal = self._pending_signal, None
            self._restore_and_reraise(None, sig)


_default_coordinator: ShutdownCoordinator | None = None


def get_shutdown_coordinator() -> ShutdownCoordinator:
    """Get or create the process-wide coordinator."""
    global _default_coordinator
    if _default_coordinator is None:
        _default_coordinator = ShutdownCoordinator()
    return _default_coordinator
