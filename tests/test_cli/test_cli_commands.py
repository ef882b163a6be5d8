"""
CLI テスト — typer.testing.CliRunner を使用した CLI コマンドのテスト

実際のブラウザ起動や MCP サーバーの起動は行わず、モックで代替する。
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from actgen.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """カレントの actgen.yaml と ACTGEN_* 環境変数の影響を受けないようにする。"""
    monkeypatch.chdir(tmp_path)
    for key in ("ACTGEN_OUTPUT_PATH", "ACTGEN_TEST_PREFIX", "ACTGEN_SESSIONS_DIR"):
        monkeypatch.delenv(key, raising=False)
    return tmp_path


def _snapshot(path: Path, session_id: str = "cli-session", **extra: object) -> Path:
    data = {
        "id": session_id,
        "actions": [
            {"toolName": "navigate", "parameters": {"url": "https://example.com"}, "timestamp": 1},
            {"toolName": "frobnicate", "parameters": {}, "timestamp": 2},
            {"toolName": "click", "parameters": {"selector": "#go"}, "timestamp": 3},
        ],
        "startTime": 1_792_195_200_000,
        "endTime": 1_792_195_260_000,
        **extra,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


# ===========================================================================
# 1. generate コマンド
# ===========================================================================

class TestGenerateCommand:
    """generate コマンドのテスト。"""

    def test_generate_writes_test(self, tmp_path: Path) -> None:
        snapshot = _snapshot(tmp_path / "session-cli-session.json")

        result = runner.invoke(app, ["generate", str(snapshot), "-o", str(tmp_path / "out")])

        assert result.exit_code == 0, result.output
        generated = tmp_path / "out" / "generatedtest_cli-session.py"
        assert generated.is_file()
        code = generated.read_text(encoding="utf-8")
        assert code.index('page.goto("https://example.com")') < code.index('page.click("#go")')
        assert "ステップ数: 2" in result.output
        assert "未対応のアクション: 1" in result.output
        assert "frobnicate" in result.output

    def test_generate_with_prefix(self, tmp_path: Path) -> None:
        snapshot = _snapshot(tmp_path / "s.json")

        result = runner.invoke(app, [
            "generate", str(snapshot), "-o", str(tmp_path / "out"), "--prefix", "Checkout",
        ])

        assert result.exit_code == 0, result.output
        code = (tmp_path / "out" / "checkout_cli-session.py").read_text(encoding="utf-8")
        assert "def test_checkout_2026_10_17(page: Page) -> None:" in code

    def test_generate_uses_snapshot_options(self, tmp_path: Path) -> None:
        """オプション未指定の場合はスナップショットの設定で出力すること。"""
        snapshot = _snapshot(
            tmp_path / "s.json",
            options={"outputPath": str(tmp_path / "snap-out"), "testNamePrefix": "Snap"},
        )

        result = runner.invoke(app, ["generate", str(snapshot)])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "snap-out" / "snap_cli-session.py").is_file()

    def test_generate_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["generate", str(tmp_path / "none.json")])
        assert result.exit_code == 1
        assert "エラー" in result.output

    def test_generate_malformed(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text('{"id": "x", "actions": {}}', encoding="utf-8")

        result = runner.invoke(app, ["generate", str(path)])

        assert result.exit_code == 1

    def test_generate_blank_prefix(self, tmp_path: Path) -> None:
        snapshot = _snapshot(tmp_path / "s.json")
        result = runner.invoke(app, ["generate", str(snapshot), "--prefix", " "])
        assert result.exit_code == 1


# ===========================================================================
# 2. sessions / show コマンド
# ===========================================================================

class TestSessionsCommand:
    """sessions コマンドのテスト。"""

    def test_lists_ids(self, tmp_path: Path) -> None:
        _snapshot(tmp_path / "snaps" / "session-b.json", "b")
        _snapshot(tmp_path / "snaps" / "session-a.json", "a")

        result = runner.invoke(app, ["sessions", "--dir", str(tmp_path / "snaps")])

        assert result.exit_code == 0
        assert result.output.split() == ["a", "b"]

    def test_empty(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["sessions", "-d", str(tmp_path / "none")])
        assert result.exit_code == 0
        assert "保存済みのセッションはありません" in result.output

    def test_default_dir_from_project_file(self, tmp_path: Path) -> None:
        (tmp_path / "actgen.yaml").write_text("sessions_dir: snaps\n", encoding="utf-8")
        _snapshot(tmp_path / "snaps" / "session-p.json", "p")

        result = runner.invoke(app, ["sessions"])

        assert result.exit_code == 0
        assert result.output.strip().splitlines()[-1] == "p"


class TestShowCommand:
    """show コマンドのテスト。"""

    def test_show_actions(self, tmp_path: Path) -> None:
        _snapshot(tmp_path / "snaps" / "session-cli-session.json")

        result = runner.invoke(app, ["show", "cli-session", "--dir", str(tmp_path / "snaps")])

        assert result.exit_code == 0, result.output
        assert "cli-session (ended, 3 actions)" in result.output
        assert "navigate" in result.output
        assert "frobnicate [unsupported]" in result.output

    def test_show_missing(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["show", "missing", "--dir", str(tmp_path)])
        assert result.exit_code == 1
        assert "エラー" in result.output


# ===========================================================================
# 3. serve コマンド
# ===========================================================================

class TestServeCommand:
    """serve コマンドのテスト。"""

    def test_serve_runs_server(self, tmp_path: Path) -> None:
        server = MagicMock()
        with patch("actgen.mcp.create_server", return_value=server) as create:
            result = runner.invoke(app, [
                "serve", "--headless", "-o", str(tmp_path / "out"), "--launch-timeout", "5",
            ])

        assert result.exit_code == 0, result.output
        config = create.call_args.kwargs["config"]
        assert config.headed is False
        assert config.output_path == str(tmp_path / "out")
        assert config.launch_timeout == 5.0
        server.run.assert_called_once()

    def test_serve_invalid_project_file(self, tmp_path: Path) -> None:
        (tmp_path / "actgen.yaml").write_text("- not\n- a mapping\n", encoding="utf-8")
        result = runner.invoke(app, ["serve"])
        assert result.exit_code == 1


# ===========================================================================
# 4. 全般
# ===========================================================================

class TestHelp:
    """ヘルプ表示のテスト。"""

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])
        assert "generate" in result.output
        assert "serve" in result.output

    def test_verbose_flag(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--verbose", "sessions", "-d", str(tmp_path)])
        assert result.exit_code == 0
