"""Unit tests for ShutdownCoordinator.

Covers:
- Registration and hook installation
- Loop-level vs process-level signal handlers
- Signal-driven shutdown (once, then default disposition re-raised)
- atexit fallback
"""

import asyncio
import logging
import signal
from unittest.mock import AsyncMock, MagicMock, call, patch

import httpx
import pytest

from src.app.services.flaresolverr.client import FlareSolverrClient
from src.app.services.flaresolverr.lifecycle import ShutdownCoordinator, get_shutdown_coordinator

LIFECYCLE = "src.app.services.flaresolverr.lifecycle"


def _disposable(side_effect=None) -> MagicMock:
    disposable = MagicMock()
    disposable.close = AsyncMock(side_effect=side_effect)
    return disposable


# =============================================================================
# REGISTRATION / HOOKS
# =============================================================================
class TestRegistration:
    """Tests for register() / unregister()."""

    def test_register_dedupes(self, coordinator) -> None:
        disposable = _disposable()
        coordinator.register(disposable)
        coordinator.register(disposable)
        assert coordinator.disposables == [disposable]

    def test_unregister(self, coordinator) -> None:
        first, second = _disposable(), _disposable()
        coordinator.register(first)
        coordinator.register(second)

        coordinator.unregister(first)

        assert coordinator.disposables == [second]

    def test_hooks_installed_once(self) -> None:
        coordinator = ShutdownCoordinator()
        with (
            patch(f"{LIFECYCLE}.atexit.register") as atexit_register,
            patch(f"{LIFECYCLE}.signal.signal") as signal_signal,
        ):
            coordinator.register(_disposable())
            coordinator.register(_disposable())

        atexit_register.assert_called_once_with(coordinator._run_at_exit)
        assert signal_signal.call_args_list == [
            call(signal.SIGINT, coordinator._on_process_signal),
            call(signal.SIGTERM, coordinator._on_process_signal),
        ]

    def test_default_coordinator_is_shared(self) -> None:
        assert get_shutdown_coordinator() is get_shutdown_coordinator()


class TestSignalHandlerInstall:
    """Tests for install_signal_handlers()."""

    def test_without_running_loop_uses_process_handlers(self, coordinator) -> None:
        with patch(f"{LIFECYCLE}.signal.signal") as signal_signal:
            assert coordinator.install_signal_handlers() is True
            assert coordinator.install_signal_handlers() is True

        assert coordinator.signal_mode == "process"
        assert signal_signal.call_count == 2
        signal_signal.assert_any_call(signal.SIGTERM, coordinator._on_process_signal)

    @pytest.mark.asyncio
    async def test_running_loop_uses_loop_handlers(self, coordinator) -> None:
        loop = asyncio.get_running_loop()
        with patch.object(loop, "add_signal_handler") as add_signal_handler:
            assert coordinator.install_signal_handlers() is True

        assert coordinator.signal_mode == "loop"
        add_signal_handler.assert_any_call(signal.SIGINT, coordinator._on_signal, signal.SIGINT)
        add_signal_handler.assert_any_call(signal.SIGTERM, coordinator._on_signal, signal.SIGTERM)

    def test_unsupported_context_installs_nothing(self, coordinator) -> None:
        with patch(f"{LIFECYCLE}.signal.signal", side_effect=ValueError("signal only works in main thread")):
            assert coordinator.install_signal_handlers() is False

        assert coordinator.signal_mode is None


# =============================================================================
# SHUTDOWN
# =============================================================================
class TestShutdown:
    """Tests for shutdown()."""

    @pytest.mark.asyncio
    async def test_closes_each_disposable_once(self, coordinator) -> None:
        first, second = _disposable(), _disposable()
        coordinator.register(first)
        coordinator.register(second)

        await coordinator.shutdown()
        await coordinator.shutdown()

        first.close.assert_awaited_once()
        second.close.assert_awaited_once()
        assert coordinator.disposables == []

    @pytest.mark.asyncio
    async def test_errors_are_logged_not_raised(self, coordinator, caplog) -> None:
        broken, healthy = _disposable(RuntimeError("proxy gone")), _disposable()
        coordinator.register(broken)
        coordinator.register(healthy)

        with caplog.at_level(logging.ERROR):
            await coordinator.shutdown()

        healthy.close.assert_awaited_once()
        assert "proxy gone" in caplog.text

    @pytest.mark.asyncio
    async def test_destroys_client_sessions(self, make_client, fake_proxy, coordinator) -> None:
        first, second = make_client(), make_client()
        await first.ensure_session("https://example.test/home")
        await second.ensure_session("https://example.test/home")

        await coordinator.shutdown()

        destroyed = sorted(c["session"] for c in fake_proxy.sent("sessions.destroy"))
        assert destroyed == ["session-1", "session-2"]
        assert first.session_id is None
        assert second.session_id is None

    def test_run_at_exit_without_disposables_is_noop(self, coordinator) -> None:
        with patch(f"{LIFECYCLE}.asyncio.run") as run:
            coordinator._run_at_exit()
        run.assert_not_called()


# =============================================================================
# SIGNAL-DRIVEN SHUTDOWN
# =============================================================================
class TestSignalShutdown:
    """SIGINT/SIGTERM close every client once, then the signal is re-raised."""

    @pytest.mark.asyncio
    async def test_loop_signal_closes_once_and_reraises(self, coordinator) -> None:
        first, second = _disposable(), _disposable()
        coordinator.register(first)
        coordinator.register(second)
        coordinator._signal_mode = "loop"
        loop = asyncio.get_running_loop()

        with (
            patch.object(loop, "remove_signal_handler") as remove_signal_handler,
            patch(f"{LIFECYCLE}.signal.raise_signal") as raise_signal,
        ):
            coordinator._on_signal(signal.SIGTERM)
            coordinator._on_signal(signal.SIGTERM)
            await coordinator._shutdown_task
            await asyncio.sleep(0)

        first.close.assert_awaited_once()
        second.close.assert_awaited_once()
        raise_signal.assert_called_once_with(signal.SIGTERM)
        assert remove_signal_handler.call_args_list == [call(signal.SIGINT), call(signal.SIGTERM)]
        assert coordinator.signal_mode is None

    @pytest.mark.asyncio
    async def test_process_signal_is_handed_to_running_loop(self, coordinator) -> None:
        disposable = _disposable()
        coordinator.register(disposable)
        coordinator._signal_mode = "process"

        with (
            patch(f"{LIFECYCLE}.signal.signal") as signal_signal,
            patch(f"{LIFECYCLE}.signal.raise_signal") as raise_signal,
        ):
            coordinator._on_process_signal(signal.SIGTERM, None)
            await asyncio.sleep(0)
            await coordinator._shutdown_task
            await asyncio.sleep(0)

        disposable.close.assert_awaited_once()
        signal_signal.assert_any_call(signal.SIGTERM, signal.SIG_DFL)
        raise_signal.assert_called_once_with(signal.SIGTERM)

    def test_client_built_before_loop_is_destroyed_on_sigterm(self, fake_proxy, mock_settings) -> None:
        coordinator = ShutdownCoordinator()
        with (
            patch(f"{LIFECYCLE}.atexit.register"),
            patch(f"{LIFECYCLE}.signal.signal") as signal_signal,
            patch(f"{LIFECYCLE}.signal.raise_signal") as raise_signal,
        ):
            # Long-lived client created at startup, before any event loop runs
            client = FlareSolverrClient(
                "startup",
                mock_settings,
                http_client=httpx.AsyncClient(transport=fake_proxy.transport),
                coordinator=coordinator,
            )
            signal_signal.assert_any_call(signal.SIGTERM, coordinator._on_process_signal)

            asyncio.run(client.ensure_session("https://example.test/home"))

            coordinator._on_process_signal(signal.SIGTERM, None)
            coordinator._on_process_signal(signal.SIGTERM, None)

        assert [c["session"] for c in fake_proxy.sent("sessions.destroy")] == ["session-1"]
        assert client.session_id is None
        signal_signal.assert_any_call(signal.SIGTERM, signal.SIG_DFL)
        raise_signal.assert_called_once_with(signal.SIGTERM)

    def test_cancelled_signal_shutdown_is_finished_at_exit(self, coordinator) -> None:
        disposable = _disposable()
        coordinator.register(disposable)

        async def loop_torn_down() -> None:
            coordinator._on_signal(signal.SIGTERM)
            coordinator._shutdown_task.cancel()
            await asyncio.sleep(0)
            await asyncio.sleep(0)

        with (
            patch(f"{LIFECYCLE}.signal.signal") as signal_signal,
            patch(f"{LIFECYCLE}.signal.raise_signal") as raise_signal,
        ):
            asyncio.run(loop_torn_down())

            disposable.close.assert_not_awaited()
            raise_signal.assert_not_called()
            assert coordinator.disposables == [disposable]

            coordinator._run_at_exit()

        disposable.close.assert_awaited_once()
        signal_signal.assert_any_call(signal.SIGTERM, signal.SIG_DFL)
        raise_signal.assert_called_once_with(signal.SIGTERM)
