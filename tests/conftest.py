"""
テスト共通フィクスチャ定義

全テストモジュールで共有するフィクスチャとブラウザのモックを提供する。
ブラウザは起動せず、モックのランチャーで代替する。
"""

from __future__ import annotations

import asyncio
import itertools
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from actgen.config import AppConfig
from actgen.context import ExecutionContext
from actgen.generator import CodegenService
from actgen.store import SessionStore

# 2026-10-17T00:00:00Z（エポックミリ秒）
FIXED_START_MS = 1_792_195_200_000


# ---------------------------------------------------------------------------
# 時刻・ストア・サービス
# ---------------------------------------------------------------------------

@pytest.fixture
def clock():
    """呼ぶたびに 1 ミリ秒進む固定時刻の関数。"""
    counter = itertools.count(FIXED_START_MS)
    return lambda: next(counter)


@pytest.fixture
def store(clock) -> SessionStore:
    """固定時刻の SessionStore。"""
    return SessionStore(clock=clock)


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """tmp_path 配下に出力する設定。"""
    return AppConfig(
        output_path=str(tmp_path / "generated"),
        test_name_prefix="GeneratedTest",
        include_comments=True,
    )


@pytest.fixture
def service(app_config: AppConfig, store: SessionStore) -> CodegenService:
    """tmp_path 配下に出力する CodegenService。"""
    return CodegenService(app_config, ExecutionContext(store=store))


# ---------------------------------------------------------------------------
# ブラウザのモック
# ---------------------------------------------------------------------------

def make_mock_page() -> MagicMock:
    """開いた状態の Page モックを生成する。"""
    page = AsyncMock()
    page.is_closed = MagicMock(return_value=False)
    return page


def make_mock_browser() -> MagicMock:
    """接続中の Browser モックを生成する。new_context().new_page() で Page を返す。"""
    browser = AsyncMock()
    browser.is_connected = MagicMock(return_value=True)

    context = AsyncMock()
    context.new_page.return_value = make_mock_page()
    browser.new_context.return_value = context
    browser.new_page.side_effect = lambda: make_mock_page()
    return browser


class FakeLauncher:
    """起動回数を数えるランチャー。delay 秒待ってから Browser モックを返す。"""

    def __init__(self, delay: float = 0.0, fail: bool = False) -> None:
        self.delay = delay
        self.fail = fail
        self.launch_count = 0
        self.stop_count = 0
        self.browsers: list[MagicMock] = []

    async def launch(self) -> MagicMock:
        self.launch_count += 1
        await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("chromium not installed")
        browser = make_mock_browser()
        self.browsers.append(browser)
        return browser

    async def stop(self) -> None:
        self.stop_count += 1


@pytest.fixture
def fake_launcher() -> FakeLauncher:
    """即座に Browser モックを返すランチャー。"""
    return FakeLauncher()


@pytest.fixture
def slow_launcher() -> FakeLauncher:
    """起動に時間がかかるランチャー（同時 acquire の検証用）。"""
    return FakeLauncher(delay=0.05)


@pytest.fixture
def failing_launcher() -> FakeLauncher:
    """起動に失敗するランチャー。"""
    return FakeLauncher(fail=True)
