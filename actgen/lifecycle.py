"""
Lifecycle — 共有ブラウザのライフサイクル管理

実行コンテキストごとに 1 つのブラウザ / Page を遅延起動し、
全ての操作ツールで共有する。同時に acquire() が呼ばれても
ブラウザの起動は 1 回だけ行われ、全呼び出し元が同じハンドルを受け取る。

状態遷移:
  UNINITIALIZED → INITIALIZING → READY →（release）→ UNINITIALIZED

主な構成:
  - LifecycleState: 実行コンテキストが保持するブラウザ / Page ハンドル
  - BrowserLauncher: ブラウザ起動の抽象（Protocol）
  - PlaywrightLauncher: Playwright による Chromium 起動
  - BrowserLifecycleManager: acquire / release の実装
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional, Protocol

from .errors import LifecycleError

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# ライフサイクル状態
# ---------------------------------------------------------------------------

class LifecycleStatus(enum.Enum):
    """共有ブラウザの状態。"""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


@dataclass
class LifecycleState:
    """実行コンテキストが保持する共有ブラウザの状態。

    1 つの実行コンテキストにつき 1 インスタンスのみ存在する。
    プロセス間で共有・シリアライズはしない。

    Attributes:
        browser: 起動済みのブラウザ。未起動時は None
        page: 操作対象の Page。未生成時は None
        initializing: ブラウザ起動中は True
        condition: 起動処理の排他と待機に使う条件変数
    """

    browser: Optional[Browser] = None
    page: Optional[Page] = None
    initializing: bool = False
    condition: asyncio.Condition = field(
        default_factory=asyncio.Condition, repr=False, compare=False,
    )

    @property
    def status(self) -> LifecycleStatus:
        """現在の状態を返す。"""
        if self.initializing:
            return LifecycleStatus.INITIALIZING
        if self.browser is not None and self.page is not None:
            return LifecycleStatus.READY
        return LifecycleStatus.UNINITIALIZED


# ---------------------------------------------------------------------------
# ブラウザ起動
# ---------------------------------------------------------------------------

class BrowserLauncher(Protocol):
    """ブラウザ起動の抽象。テストではモックに差し替える。"""

    async def launch(self) -> Browser:
        """ブラウザを起動して返す。"""
        ...

    async def stop(self) -> None:
        """起動に使ったリソースを解放する。"""
        ...


class PlaywrightLauncher:
    """Playwright で Chromium を起動するランチャー。

    Playwright ドライバーは最初の launch() で開始し、stop() で停止する。
    """

    def __init__(self, headed: bool = True, slow_mo: int = 0) -> None:
        """PlaywrightLauncher を初期化する。

        Args:
            headed: True でブラウザウィンドウを表示
            slow_mo: 操作ごとの遅延（ミリ秒）
        """
        self.headed = headed
        self.slow_mo = slow_mo
        self._pw_instance: Optional[Any] = None

    async def launch(self) -> Browser:
        """Chromium を起動する。"""
        if self._pw_instance is None:
            from playwright.async_api import async_playwright

            self._pw_instance = await async_playwright().start()

        logger.info("ブラウザを起動しています... (headed=%s)", self.headed)
        return await self._pw_instance.chromium.launch(
            headless=not self.headed,
            slow_mo=self.slow_mo,
        )

    async def stop(self) -> None:
        """Playwright ドライバーを停止する。"""
        if self._pw_instance is None:
            return
        pw, self._pw_instance = self._pw_instance, None
        await pw.stop()


# ---------------------------------------------------------------------------
# BrowserLifecycleManager 本体
# ---------------------------------------------------------------------------

class BrowserLifecycleManager:
    """共有ブラウザの取得と解放を管理する。

    ブラウザ / Page の生成・破棄は必ずこのクラスを経由する。
    起動失敗は LifecycleError として呼び出し元に伝播し、自動リトライはしない。

    使用例::

        manager = BrowserLifecycleManager(PlaywrightLauncher(headed=False))
        browser, page = await manager.acquire(ctx.lifecycle)
        await page.goto("https://example.com")
        await manager.release(ctx.lifecycle)
    """

    def __init__(
        self,
        launcher: Optional[BrowserLauncher] = None,
        *,
        viewport_width: int = 1280,
        viewport_height: int = 720,
        launch_timeout: Optional[float] = None,
    ) -> None:
        """BrowserLifecycleManager を初期化する。

        Args:
            launcher: ブラウザランチャー。None で PlaywrightLauncher
            viewport_width: ビューポート幅
            viewport_height: ビューポート高さ
            launch_timeout: 起動待ちのタイムアウト秒。None で無制限
        """
        self._launcher: BrowserLauncher = launcher or PlaywrightLauncher()
        self._context_options: dict[str, Any] = {
            "viewport": {"width": viewport_width, "height": viewport_height},
            "device_scale_factor": 1,
        }
        self._launch_timeout = launch_timeout

    async def acquire(self, state: LifecycleState) -> tuple[Browser, Page]:
        """共有ブラウザと Page を返す。必要に応じて起動する。

        - 接続中のブラウザと開いている Page があればそのまま返す
        - 他の呼び出し元が起動中なら完了を待ってから状態を再確認する
        - ブラウザが接続中で Page だけ閉じている場合は Page のみ再生成する

        Args:
            state: 実行コンテキストのライフサイクル状態

        Returns:
            (ブラウザ, Page) のタプル

        Raises:
            LifecycleError: ブラウザの起動に失敗した場合、または起動待ちがタイムアウトした場合
        """
        async with state.condition:
            await self._wait_until_idle(state)

            browser = state.browser
            if browser is not None and browser.is_connected():
                if state.page is None or state.page.is_closed():
                    try:
                        state.page = await browser.new_page()
                    except Exception as exc:
                        logger.exception("Page の再生成に失敗しました")
                        raise LifecycleError(f"Page の再生成に失敗しました: {exc}") from exc
                    logger.info("既存のブラウザに新しい Page を作成しました")
                return browser, state.page

            state.initializing = True

        try:
            browser, page = await self._launch()
        except Exception as exc:
            async with state.condition:
                state.initializing = False
                state.condition.notify_all()
            logger.exception("ブラウザの起動に失敗しました")
            raise LifecycleError(f"ブラウザの起動に失敗しました: {exc}") from exc

        async with state.condition:
            state.browser = browser
            state.page = page
            state.initializing = False
            state.condition.notify_all()

        logger.info("ブラウザを起動しました")
        return browser, page

    async def release(self, state: LifecycleState) -> None:
        """ブラウザを終了し、状態を UNINITIALIZED に戻す。

        終了処理の失敗はログに記録するのみで伝播しない。
        状態は終了の成否に関わらずリセットされる。

        Args:
            state: 実行コンテキストのライフサイクル状態
        """
        async with state.condition:
            await self._wait_until_idle(state)
            browser = state.browser
            state.browser = None
            state.page = None

        logger.info("ブラウザを終了しています...")
        try:
            if browser is not None:
                await browser.close()
        except Exception:
            logger.exception("ブラウザの終了中にエラーが発生しました")

        try:
            await self._launcher.stop()
        except Exception:
            logger.exception("ランチャーの停止中にエラーが発生しました")

        logger.info("ブラウザの状態をリセットしました")

    async def _wait_until_idle(self, state: LifecycleState) -> None:
        """他の呼び出し元による起動が終わるまで待つ。condition を保持して呼ぶこと。"""
        if not state.initializing:
            return

        logger.info("ブラウザの起動完了を待機しています...")
        try:
            await asyncio.wait_for(
                state.condition.wait_for(lambda: not state.initializing),
                timeout=self._launch_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise LifecycleError(
                f"ブラウザの起動待ちがタイムアウトしました ({self._launch_timeout} 秒)"
            ) from exc

    async def _launch(self) -> tuple[Browser, Page]:
        """ブラウザを起動し、新しいコンテキストと Page を生成する。"""
        browser = await self._launcher.launch()
        context = await browser.new_context(**self._context_options)
        page = await context.new_page()
        return browser, page
