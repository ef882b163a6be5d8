"""
CLI エントリポイント — Typer ベースのコマンドラインインターフェース

actgen コマンドとして以下のサブコマンドを提供する:
  - serve: MCP サーバー起動（stdio）
  - generate: スナップショットからテストを生成
  - sessions: 保存済みセッションの一覧
  - show: 保存済みセッションの内容表示
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

import typer

from .config import AppConfig, apply_overrides, load_config
from .errors import ActgenError, OperationResult
from .generator import CodegenService, GenerationResult
from .models import Session
from .translator import resolve_kind

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "actgen — ブラウザ操作の記録から pytest-playwright テストを生成\n\n"
        "基本の流れ:\n"
        "  1. actgen serve             MCP サーバーを起動して操作を記録\n"
        "  2. actgen generate xxx.json 保存したセッションからテストを再生成\n\n"
        "詳しくは各コマンドに --help を付けてください。"
    ),
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="デバッグログを出力する",
    ),
) -> None:
    """ログ出力を設定する。"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        stream=sys.stderr,
    )


# ---------------------------------------------------------------------------
# ヘルパー
# ---------------------------------------------------------------------------

def _fail(message: str) -> NoReturn:
    typer.echo(f"エラー: {message}", err=True)
    raise typer.Exit(code=1)


def _load(project_file: Optional[Path], **overrides: object) -> AppConfig:
    """設定を読み込み、CLI 引数で上書きする。"""
    try:
        config = load_config(project_file)
    except ActgenError as exc:
        _fail(str(exc))
    return apply_overrides(config, **overrides)


def _unwrap(result: OperationResult) -> object:
    if not result.ok:
        _fail(result.message)
    return result.value


# ---------------------------------------------------------------------------
# serve コマンド
# ---------------------------------------------------------------------------

@app.command()
def serve(
    headless: bool = typer.Option(
        False, "--headless", help="ブラウザをヘッドレスで起動する",
    ),
    output_path: Optional[str] = typer.Option(
        None, "--output-path", "-o", help="生成テストの出力先ディレクトリ",
    ),
    prefix: Optional[str] = typer.Option(
        None, "--prefix", help="テスト名プレフィックス",
    ),
    launch_timeout: Optional[float] = typer.Option(
        None, "--launch-timeout", help="ブラウザ起動待ちのタイムアウト秒",
    ),
    project_file: Optional[Path] = typer.Option(
        None, "--config", help="プロジェクトファイル（デフォルト: actgen.yaml）",
    ),
) -> None:
    """MCP サーバーを起動する（stdio）。"""
    config = _load(
        project_file,
        headed=False if headless else None,
        output_path=output_path,
        test_name_prefix=prefix,
        launch_timeout=launch_timeout,
    )

    from .mcp import create_server

    create_server(config=config).run()


# ---------------------------------------------------------------------------
# generate コマンド
# ---------------------------------------------------------------------------

@app.command()
def generate(
    snapshot: Path = typer.Argument(..., help="セッションスナップショット（JSON）"),
    output_path: Optional[str] = typer.Option(
        None, "--output-path", "-o", help="生成テストの出力先ディレクトリ",
    ),
    prefix: Optional[str] = typer.Option(
        None, "--prefix", help="テスト名プレフィックス",
    ),
    project_file: Optional[Path] = typer.Option(
        None, "--config", help="プロジェクトファイル（デフォルト: actgen.yaml）",
    ),
) -> None:
    """スナップショットを読み込み、テストを生成する。"""
    service = CodegenService(_load(project_file))
    session = _unwrap(service.import_session(snapshot))
    assert isinstance(session, Session)

    if output_path is not None or prefix is not None:
        try:
            session.options = session.options.merged({
                "output_path": output_path,
                "test_name_prefix": prefix,
            })
        except ValueError as exc:
            _fail(f"オプションが不正です: {exc}")

    generated = _unwrap(service.generate_test(session.id))
    assert isinstance(generated, GenerationResult)

    typer.echo(f"テストを生成しました: {generated.file_path}")
    typer.echo(f"ステップ数: {len(generated.test_case.steps)}")
    if generated.diagnostics:
        typer.echo(f"未対応のアクション: {len(generated.diagnostics)}")
        for diagnostic in generated.diagnostics:
            typer.echo(f"  #{diagnostic.index} {diagnostic.tool_name}")


# ---------------------------------------------------------------------------
# sessions / show コマンド
# ---------------------------------------------------------------------------

@app.command()
def sessions(
    directory: Optional[Path] = typer.Option(
        None, "--dir", "-d", help="スナップショットの保存先",
    ),
    project_file: Optional[Path] = typer.Option(
        None, "--config", help="プロジェクトファイル（デフォルト: actgen.yaml）",
    ),
) -> None:
    """保存済みセッションの ID を一覧表示する。"""
    service = CodegenService(_load(project_file))
    session_ids = _unwrap(service.list_saved_sessions(directory))
    assert isinstance(session_ids, list)

    if not session_ids:
        typer.echo("保存済みのセッションはありません")
        return
    for session_id in session_ids:
        typer.echo(session_id)


@app.command()
def show(
    session_id: str = typer.Argument(..., help="セッション ID"),
    directory: Optional[Path] = typer.Option(
        None, "--dir", "-d", help="スナップショットの保存先",
    ),
    project_file: Optional[Path] = typer.Option(
        None, "--config", help="プロジェクトファイル（デフォルト: actgen.yaml）",
    ),
) -> None:
    """保存済みセッションのアクションを一覧表示する。"""
    service = CodegenService(_load(project_file))
    session = _unwrap(service.load_session(session_id, directory))
    assert isinstance(session, Session)

    status = "ended" if session.is_ended else "open"
    typer.echo(f"セッション: {session.id} ({status}, {len(session.actions)} actions)")
    for index, action in enumerate(session.actions, start=1):
        mark = "" if resolve_kind(action.tool_name) is not None else " [unsupported]"
        params = json.dumps(action.parameters, ensure_ascii=False, default=str)
        typer.echo(f"  {index:3d}. {action.tool_name}{mark} {params}")
