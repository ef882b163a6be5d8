"""
actgen MCP Server パッケージ

AI エージェントがブラウザを操作し、記録した操作から pytest-playwright テストを
生成する MCP (Model Context Protocol) サーバーを提供する。

主な構成:
  - server: FastMCP サーバー本体（共有状態の構築）
  - tools_codegen: 記録セッションとテスト生成のツール
  - tools_browser: 共有ブラウザ上の基本操作ツール
"""

from __future__ import annotations


def create_server(config=None, launcher=None):  # type: ignore[no-untyped-def]
    """actgen MCP サーバーを生成する（遅延インポート）。

    fastmcp の import コストを CLI の他のコマンドに負わせないため、
    server モジュールの import をここで遅延させる。

    Args:
        config: AppConfig インスタンス（None でプロジェクトファイルと環境変数から読み込み）
        launcher: ブラウザランチャー（None で PlaywrightLauncher）

    Returns:
        設定済みの FastMCP サーバーインスタンス
    """
    from .server import create_server as _create
    return _create(config=config, launcher=launcher)


__all__ = [
    "create_server",
]
