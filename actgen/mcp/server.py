"""
actgen MCP Server — ブラウザ操作の記録 + テストコード生成サーバー

FastMCP を使用して、AI エージェントがブラウザを操作し、
記録した操作から pytest-playwright テストを生成する MCP サーバーを提供する。

ツール定義は以下のモジュールに分離:
  - tools_codegen: 記録セッションとテスト生成のツール
  - tools_browser: 共有ブラウザ上の基本操作ツール

本モジュールはサーバー生成と共有状態（実行コンテキスト）の構築を担当する。
"""

from __future__ import annotations

import logging
from typing import Optional

from fastmcp import FastMCP

from ..config import AppConfig, load_config
from ..context import ExecutionContext
from ..generator import CodegenService
from ..lifecycle import BrowserLauncher, BrowserLifecycleManager, PlaywrightLauncher
from .tools_browser import register_browser_tools
from .tools_codegen import register_codegen_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "actgen"


def create_server(
    config: Optional[AppConfig] = None,
    launcher: Optional[BrowserLauncher] = None,
) -> FastMCP:
    """actgen MCP サーバーを生成する。

    Args:
        config: 実行時設定。None の場合はプロジェクトファイルと環境変数から読み込む。
        launcher: ブラウザランチャー。None の場合は PlaywrightLauncher

    Returns:
        設定済みの FastMCP サーバーインスタンス
    """
    if config is None:
        config = load_config()

    mcp = FastMCP(SERVER_NAME)

    # 共有状態（ツール間で共有）
    context = ExecutionContext()
    service = CodegenService(config, context)
    manager = BrowserLifecycleManager(
        launcher or PlaywrightLauncher(headed=config.headed, slow_mo=config.slow_mo),
        viewport_width=config.viewport_width,
        viewport_height=config.viewport_height,
        launch_timeout=config.launch_timeout,
    )

    register_codegen_tools(mcp, service)
    register_browser_tools(mcp, service, manager)

    logger.info("MCP サーバーを生成しました (output_path=%s)", config.output_path)
    return mcp
