"""
ブラウザ操作ツール — 共有ブラウザ上の基本操作

MCP サーバーに登録するブラウザ操作ツールを定義する。
Page は BrowserLifecycleManager から取得し、操作に成功した場合は
現在の記録セッションにアクションとして自動記録する。

主なツール:
  - navigate / click / type_text / screenshot: 基本操作
  - close_browser: 共有ブラウザの終了
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from fastmcp import FastMCP

from ..errors import ErrorKind, LifecycleError, OperationResult
from ..generator import CodegenService
from ..lifecycle import BrowserLifecycleManager

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

PageOperation = Callable[["Page"], Awaitable[str]]


async def run_browser_action(
    service: CodegenService,
    manager: BrowserLifecycleManager,
    tool_name: str,
    parameters: dict[str, Any],
    operation: PageOperation,
) -> dict[str, Any]:
    """共有 Page で操作を実行し、成功時は現在のセッションに記録する。

    Args:
        service: 記録先の CodegenService
        manager: 共有ブラウザの管理
        tool_name: 記録するツール名
        parameters: 記録するパラメータ
        operation: Page を受け取り結果メッセージを返す操作

    Returns:
        {"result": メッセージ} またはエラー辞書
    """
    try:
        _, page = await manager.acquire(service.context.lifecycle)
    except LifecycleError as exc:
        return OperationResult.from_exception(exc).to_payload()

    try:
        message = await operation(page)
    except Exception as exc:
        logger.exception("ブラウザ操作に失敗しました: %s", tool_name)
        return OperationResult.failure(
            ErrorKind.ACTION, f"{tool_name} failed: {exc}",
        ).to_payload()

    if service.context.codegen_session_id is not None:
        service.record_action(tool_name, parameters, result=message)
    return {"result": message}


def build_browser_tools(
    service: CodegenService,
    manager: BrowserLifecycleManager,
) -> list[Callable[..., Any]]:
    """ブラウザ操作ツールの関数一覧を生成する。

    Args:
        service: 記録先の CodegenService
        manager: 共有ブラウザの管理

    Returns:
        MCP に登録する非同期関数のリスト
    """

    async def navigate(url: str) -> dict[str, Any]:
        """Navigate to a URL.

        Args:
            url: The URL to navigate to

        Returns:
            Status message, or an error payload
        """
        async def operation(page: Page) -> str:
            await page.goto(url)
            await page.wait_for_load_state("domcontentloaded")
            return f"Navigated to {url}"

        return await run_browser_action(
            service, manager, "navigate", {"url": url}, operation,
        )

    async def click(selector: str) -> dict[str, Any]:
        """Click on an element on the page.

        Args:
            selector: CSS or XPath selector for the element

        Returns:
            Status message, or an error payload
        """
        async def operation(page: Page) -> str:
            await page.click(selector)
            return f"Clicked on element with selector: {selector}"

        return await run_browser_action(
            service, manager, "click", {"selector": selector}, operation,
        )

    async def type_text(selector: str, text: str) -> dict[str, Any]:
        """Type text into an input field.

        Args:
            selector: CSS or XPath selector for the input element
            text: Text to type

        Returns:
            Status message, or an error payload
        """
        async def operation(page: Page) -> str:
            await page.fill(selector, text)
            return f"Typed text into element with selector: {selector}"

        return await run_browser_action(
            service, manager, "type", {"selector": selector, "text": text}, operation,
        )

    async def screenshot(path: Optional[str] = None, full_page: bool = True) -> dict[str, Any]:
        """Capture a screenshot of the current page.

        Args:
            path: Optional path to save the screenshot
            full_page: Capture the full page or just the viewport

        Returns:
            Status message, or an error payload
        """
        async def operation(page: Page) -> str:
            data = await page.screenshot(path=path, full_page=full_page)
            if path:
                return f"Screenshot saved to {path}"
            return f"Screenshot captured ({len(data)} bytes)"

        return await run_browser_action(
            service, manager, "screenshot", {"path": path}, operation,
        )

    async def close_browser() -> dict[str, Any]:
        """Close the shared browser instance.

        Returns:
            Status message
        """
        await manager.release(service.context.lifecycle)
        if service.context.codegen_session_id is not None:
            service.record_action("closeBrowser", {})
        return {"result": "Browser closed"}

    return [navigate, click, type_text, screenshot, close_browser]


def register_browser_tools(
    mcp: FastMCP,
    service: CodegenService,
    manager: BrowserLifecycleManager,
) -> None:
    """ブラウザ操作ツールを MCP サーバーに登録する。

    Args:
        mcp: FastMCP サーバーインスタンス
        service: 記録先の CodegenService
        manager: 共有ブラウザの管理
    """
    for func in build_browser_tools(service, manager):
        mcp.tool(func)
        logger.debug("ツールを登録しました: %s", func.__name__)
