"""
Server テスト — MCP サーバーの生成とツール公開

FastMCP サーバーがテスト生成ツールとブラウザ操作ツールを公開することを検証する。
ブラウザは起動しない（ランチャーはモック）。
"""

from __future__ import annotations

from pathlib import Path

import pytest

from actgen.config import AppConfig
from actgen.mcp import create_server as lazy_create_server
from actgen.mcp.server import SERVER_NAME, create_server

_CODEGEN_TOOLS = [
    "start_codegen_session",
    "record_action",
    "generate_test",
    "end_codegen_session",
    "list_saved_sessions",
    "load_session",
    "import_session",
]

_BROWSER_TOOLS = ["navigate", "click", "type_text", "screenshot", "close_browser"]


@pytest.fixture
def server(tmp_path: Path, fake_launcher):
    return create_server(AppConfig(output_path=str(tmp_path)), launcher=fake_launcher)


# ---------------------------------------------------------------------------
# サーバー生成テスト
# ---------------------------------------------------------------------------

class TestCreateServer:
    """create_server() のテスト。"""

    def test_server_has_name(self, server) -> None:
        assert server.name == SERVER_NAME == "actgen"

    def test_lazy_entry_point(self, tmp_path: Path, fake_launcher) -> None:
        """パッケージの create_server からも生成できること。"""
        server = lazy_create_server(AppConfig(output_path=str(tmp_path)), launcher=fake_launcher)
        assert server.name == "actgen"

    def test_config_from_environment(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, fake_launcher,
    ) -> None:
        """設定を省略した場合はカレントの actgen.yaml と環境変数から読み込むこと。"""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("ACTGEN_OUTPUT_PATH", str(tmp_path / "from-env"))
        assert create_server(launcher=fake_launcher).name == "actgen"


# ---------------------------------------------------------------------------
# ツール一覧テスト
# ---------------------------------------------------------------------------

class TestServerTools:
    """サーバーに登録されたツールの存在確認テスト。"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tool_name", _CODEGEN_TOOLS)
    async def test_has_codegen_tool(self, server, tool_name: str) -> None:
        tools = await server.list_tools()
        assert tool_name in [t.name for t in tools]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tool_name", _BROWSER_TOOLS)
    async def test_has_browser_tool(self, server, tool_name: str) -> None:
        tools = await server.list_tools()
        assert tool_name in [t.name for t in tools]

    @pytest.mark.asyncio
    async def test_tool_count(self, server) -> None:
        tools = await server.list_tools()
        assert len(tools) == len(_CODEGEN_TOOLS) + len(_BROWSER_TOOLS)

    @pytest.mark.asyncio
    async def test_tools_have_descriptions(self, server) -> None:
        """全ツールに説明文（docstring）が設定されていること。"""
        tools = await server.list_tools()
        assert all(t.description for t in tools)
