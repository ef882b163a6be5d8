"""
BrowserLifecycleManager テスト — 共有ブラウザの取得と解放

実際のブラウザは起動せず、FakeLauncher（conftest）で代替する。
同時 acquire で起動が 1 回だけ行われること、起動失敗・タイムアウト、
release の冪等性を検証する。
"""

from __future__ import annotations

import asyncio

import pytest

from actgen.errors import LifecycleError
from actgen.lifecycle import BrowserLifecycleManager, LifecycleState, LifecycleStatus


@pytest.fixture
def state() -> LifecycleState:
    return LifecycleState()


# ---------------------------------------------------------------------------
# acquire
# ---------------------------------------------------------------------------

class TestAcquire:
    """acquire() のテスト。"""

    @pytest.mark.asyncio
    async def test_first_acquire_launches(self, fake_launcher, state) -> None:
        """初回の acquire でブラウザが起動し READY になること。"""
        manager = BrowserLifecycleManager(fake_launcher)

        browser, page = await manager.acquire(state)

        assert fake_launcher.launch_count == 1
        assert state.browser is browser
        assert state.page is page
        assert state.status is LifecycleStatus.READY

    @pytest.mark.asyncio
    async def test_context_uses_viewport(self, fake_launcher, state) -> None:
        manager = BrowserLifecycleManager(
            fake_launcher, viewport_width=800, viewport_height=600,
        )
        browser, _ = await manager.acquire(state)

        browser.new_context.assert_awaited_once_with(
            viewport={"width": 800, "height": 600}, device_scale_factor=1,
        )

    @pytest.mark.asyncio
    async def test_second_acquire_reuses(self, fake_launcher, state) -> None:
        """起動済みの場合は同じハンドルを返し、再起動しないこと。"""
        manager = BrowserLifecycleManager(fake_launcher)

        first = await manager.acquire(state)
        second = await manager.acquire(state)

        assert first == second
        assert fake_launcher.launch_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_acquire_launches_once(self, slow_launcher, state) -> None:
        """同時に acquire しても起動は 1 回で、全員が同じハンドルを受け取ること。"""
        manager = BrowserLifecycleManager(slow_launcher)

        results = await asyncio.gather(*(manager.acquire(state) for _ in range(5)))

        assert slow_launcher.launch_count == 1
        assert all(r == results[0] for r in results)

    @pytest.mark.asyncio
    async def test_status_is_initializing_during_launch(self, slow_launcher, state) -> None:
        manager = BrowserLifecycleManager(slow_launcher)

        task = asyncio.create_task(manager.acquire(state))
        await asyncio.sleep(0.01)
        assert state.status is LifecycleStatus.INITIALIZING

        await task
        assert state.status is LifecycleStatus.READY

    @pytest.mark.asyncio
    async def test_closed_page_is_recreated(self, fake_launcher, state) -> None:
        """Page だけ閉じている場合はブラウザを再起動せず Page を作り直すこと。"""
        manager = BrowserLifecycleManager(fake_launcher)
        browser, page = await manager.acquire(state)
        page.is_closed.return_value = True

        same_browser, new_page = await manager.acquire(state)

        assert same_browser is browser
        assert new_page is not page
        assert fake_launcher.launch_count == 1
        browser.new_page.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_page_recreation_failure_raises(self, fake_launcher, state) -> None:
        """Page の再生成に失敗した場合も LifecycleError になること。"""
        manager = BrowserLifecycleManager(fake_launcher)
        browser, page = await manager.acquire(state)
        page.is_closed.return_value = True
        browser.new_page.side_effect = RuntimeError("target closed")

        with pytest.raises(LifecycleError, match="target closed"):
            await manager.acquire(state)

        assert fake_launcher.launch_count == 1
        assert not state.initializing

    @pytest.mark.asyncio
    async def test_disconnected_browser_is_relaunched(self, fake_launcher, state) -> None:
        manager = BrowserLifecycleManager(fake_launcher)
        browser, _ = await manager.acquire(state)
        browser.is_connected.return_value = False

        new_browser, _ = await manager.acquire(state)

        assert new_browser is not browser
        assert fake_launcher.launch_count == 2

    @pytest.mark.asyncio
    async def test_launch_failure_raises(self, failing_launcher, state) -> None:
        """起動失敗は LifecycleError になり、状態は UNINITIALIZED に戻ること。"""
        manager = BrowserLifecycleManager(failing_launcher)

        with pytest.raises(LifecycleError, match="chromium not installed"):
            await manager.acquire(state)

        assert state.status is LifecycleStatus.UNINITIALIZED
        assert state.browser is None

    @pytest.mark.asyncio
    async def test_launch_failure_is_not_retried(self, failing_launcher, state) -> None:
        """自動リトライはせず、次の acquire で改めて起動を試みること。"""
        manager = BrowserLifecycleManager(failing_launcher)

        for _ in range(2):
            with pytest.raises(LifecycleError):
                await manager.acquire(state)

        assert failing_launcher.launch_count == 2

    @pytest.mark.asyncio
    async def test_waiters_see_failure_and_retry(self, failing_launcher, state) -> None:
        """起動待ちの呼び出し元は失敗後に自分で起動を試みること。"""
        launcher = failing_launcher
        launcher.delay = 0.02
        manager = BrowserLifecycleManager(launcher)

        results = await asyncio.gather(
            manager.acquire(state), manager.acquire(state), return_exceptions=True,
        )

        assert all(isinstance(r, LifecycleError) for r in results)
        assert launcher.launch_count == 2

    @pytest.mark.asyncio
    async def test_wait_timeout(self, state) -> None:
        """起動待ちがタイムアウトした場合は LifecycleError になること。"""
        manager = BrowserLifecycleManager(launch_timeout=0.01)
        state.initializing = True

        with pytest.raises(LifecycleError, match="タイムアウト"):
            await manager.acquire(state)


# ---------------------------------------------------------------------------
# release
# ---------------------------------------------------------------------------

class TestRelease:
    """release() のテスト。"""

    @pytest.mark.asyncio
    async def test_release_closes_and_resets(self, fake_launcher, state) -> None:
        manager = BrowserLifecycleManager(fake_launcher)
        browser, _ = await manager.acquire(state)

        await manager.release(state)

        browser.close.assert_awaited_once()
        assert fake_launcher.stop_count == 1
        assert state.status is LifecycleStatus.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_release_is_idempotent(self, fake_launcher, state) -> None:
        """未起動・解放済みの状態で release しても例外にならないこと。"""
        manager = BrowserLifecycleManager(fake_launcher)

        await manager.release(state)
        await manager.acquire(state)
        await manager.release(state)
        await manager.release(state)

        assert state.browser is None
        assert state.page is None

    @pytest.mark.asyncio
    async def test_close_error_is_swallowed(
        self, fake_launcher, state, caplog: pytest.LogCaptureFixture,
    ) -> None:
        """終了処理の失敗はログのみで、状態はリセットされること。"""
        manager = BrowserLifecycleManager(fake_launcher)
        browser, _ = await manager.acquire(state)
        browser.close.side_effect = RuntimeError("already gone")

        with caplog.at_level("ERROR", logger="actgen.lifecycle"):
            await manager.release(state)

        assert state.status is LifecycleStatus.UNINITIALIZED
        assert "already gone" in caplog.text
        assert fake_launcher.stop_count == 1

    @pytest.mark.asyncio
    async def test_acquire_after_release_relaunches(self, fake_launcher, state) -> None:
        manager = BrowserLifecycleManager(fake_launcher)
        first, _ = await manager.acquire(state)
        await manager.release(state)

        second, _ = await manager.acquire(state)

        assert second is not first
        assert fake_launcher.launch_count == 2
