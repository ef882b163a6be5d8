"""
actgen 設定 — プロジェクトファイル・環境変数・CLI 引数からの設定読み込み

CLI 引数 > 環境変数 > プロジェクトファイル（actgen.yaml）> デフォルト値
の優先順位で適用される。

環境変数一覧:
  ACTGEN_OUTPUT_PATH     : 生成テストの出力先（デフォルト: tests）
  ACTGEN_TEST_PREFIX     : テスト名プレフィックス（デフォルト: GeneratedTest）
  ACTGEN_INCLUDE_COMMENTS: 生成コードにコメントを含めるか（true/false, デフォルト: true）
  ACTGEN_SESSIONS_DIR    : スナップショット保存先（デフォルト: {出力先}/sessions）
  ACTGEN_HEADED          : ブラウザ表示モード（true/false, デフォルト: true）
  ACTGEN_SLOW_MO         : 操作ごとの遅延ミリ秒（デフォルト: 0）
  ACTGEN_VIEWPORT_WIDTH  : ビューポート幅（デフォルト: 1280）
  ACTGEN_VIEWPORT_HEIGHT : ビューポート高さ（デフォルト: 720）
  ACTGEN_LAUNCH_TIMEOUT  : ブラウザ起動待ちのタイムアウト秒（デフォルト: なし）
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Callable, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .errors import ValidationError
from .models import CodegenOptions

logger = logging.getLogger(__name__)

# デフォルトのプロジェクトファイル名
PROJECT_FILE_NAME = "actgen.yaml"

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_OUTPUT_PATH = "ACTGEN_OUTPUT_PATH"
_ENV_TEST_PREFIX = "ACTGEN_TEST_PREFIX"
_ENV_INCLUDE_COMMENTS = "ACTGEN_INCLUDE_COMMENTS"
_ENV_SESSIONS_DIR = "ACTGEN_SESSIONS_DIR"
_ENV_HEADED = "ACTGEN_HEADED"
_ENV_SLOW_MO = "ACTGEN_SLOW_MO"
_ENV_VIEWPORT_WIDTH = "ACTGEN_VIEWPORT_WIDTH"
_ENV_VIEWPORT_HEIGHT = "ACTGEN_VIEWPORT_HEIGHT"
_ENV_LAUNCH_TIMEOUT = "ACTGEN_LAUNCH_TIMEOUT"


# ---------------------------------------------------------------------------
# 設定データクラス
# ---------------------------------------------------------------------------

@dataclass
class AppConfig:
    """actgen の実行時設定。

    Attributes:
        output_path: 生成テストの出力先ディレクトリ
        test_name_prefix: テスト名プレフィックス
        include_comments: 生成コードにコメントを含めるか
        sessions_dir: スナップショット保存先。None で {output_path}/sessions
        headed: ブラウザ表示モード（True=表示, False=ヘッドレス）
        slow_mo: 操作ごとの遅延（ミリ秒）
        viewport_width: ビューポート幅
        viewport_height: ビューポート高さ
        launch_timeout: ブラウザ起動待ちのタイムアウト秒。None で無制限
    """

    output_path: str = "tests"
    test_name_prefix: str = "GeneratedTest"
    include_comments: bool = True
    sessions_dir: Optional[str] = None
    headed: bool = True
    slow_mo: int = 0
    viewport_width: int = 1280
    viewport_height: int = 720
    launch_timeout: Optional[float] = None

    @property
    def effective_sessions_dir(self) -> Path:
        """スナップショット保存先を返す。"""
        if self.sessions_dir:
            return Path(self.sessions_dir)
        return Path(self.output_path) / "sessions"

    def to_codegen_options(self) -> CodegenOptions:
        """セッション生成時のデフォルト設定に変換する。

        Raises:
            ValidationError: 設定値が不正な場合
        """
        try:
            return CodegenOptions(
                output_path=self.output_path,
                test_name_prefix=self.test_name_prefix,
                include_comments=self.include_comments,
            )
        except ValueError as exc:
            raise ValidationError(f"設定値が不正です: {exc}") from exc


# ---------------------------------------------------------------------------
# 値の変換
# ---------------------------------------------------------------------------

def _parse_bool(value: str) -> bool:
    """文字列を bool に変換する。

    Args:
        value: "true", "1", "yes" → True、それ以外 → False

    Returns:
        変換結果
    """
    return value.lower() in ("true", "1", "yes")


def _set_number(
    config: AppConfig, attr: str, env_key: str, cast: Callable[[str], Any],
) -> None:
    """環境変数の数値を設定に反映する。不正値は警告して無視する。"""
    raw = os.environ[env_key]
    try:
        setattr(config, attr, cast(raw))
    except ValueError:
        logger.warning("%s の値が不正です: %s", env_key, raw)


# ---------------------------------------------------------------------------
# プロジェクトファイルからの読み込み
# ---------------------------------------------------------------------------

def load_project_file(path: Path, config: Optional[AppConfig] = None) -> AppConfig:
    """プロジェクトファイル（YAML）の値を設定に反映する。

    ファイルが存在しない場合は何もしない。未知のキーは警告して無視する。

    Args:
        path: プロジェクトファイルのパス
        config: ベースとなる設定。None でデフォルト値

    Returns:
        プロジェクトファイルを反映した設定

    Raises:
        ValidationError: YAML 構文エラーまたはトップレベルがマッピングでない場合
    """
    config = config or AppConfig()
    path = Path(path)
    if not path.is_file():
        return config

    yaml = YAML(typ="safe")
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.load(f) or {}
    except YAMLError as exc:
        raise ValidationError(f"プロジェクトファイルの構文が不正です: {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValidationError(f"プロジェクトファイルはマッピングである必要があります: {path}")

    known = {f.name for f in fields(AppConfig)}
    for key, value in data.items():
        if key not in known:
            logger.warning("未知の設定キーを無視します: %s (%s)", key, path)
            continue
        setattr(config, key, value)

    logger.info("プロジェクトファイルを読み込みました: %s", path)
    return config


# ---------------------------------------------------------------------------
# 環境変数からの読み込み
# ---------------------------------------------------------------------------

def load_config_from_env(config: Optional[AppConfig] = None) -> AppConfig:
    """環境変数の値を設定に反映する。

    設定されていない環境変数はベースの値を維持する。

    Args:
        config: ベースとなる設定。None でデフォルト値

    Returns:
        環境変数を反映した設定
    """
    config = config or AppConfig()

    if _ENV_OUTPUT_PATH in os.environ:
        config.output_path = os.environ[_ENV_OUTPUT_PATH]

    if _ENV_TEST_PREFIX in os.environ:
        config.test_name_prefix = os.environ[_ENV_TEST_PREFIX]

    if _ENV_INCLUDE_COMMENTS in os.environ:
        config.include_comments = _parse_bool(os.environ[_ENV_INCLUDE_COMMENTS])

    if _ENV_SESSIONS_DIR in os.environ:
        config.sessions_dir = os.environ[_ENV_SESSIONS_DIR]

    if _ENV_HEADED in os.environ:
        config.headed = _parse_bool(os.environ[_ENV_HEADED])

    if _ENV_SLOW_MO in os.environ:
        _set_number(config, "slow_mo", _ENV_SLOW_MO, int)

    if _ENV_VIEWPORT_WIDTH in os.environ:
        _set_number(config, "viewport_width", _ENV_VIEWPORT_WIDTH, int)

    if _ENV_VIEWPORT_HEIGHT in os.environ:
        _set_number(config, "viewport_height", _ENV_VIEWPORT_HEIGHT, int)

    if _ENV_LAUNCH_TIMEOUT in os.environ:
        _set_number(config, "launch_timeout", _ENV_LAUNCH_TIMEOUT, float)

    logger.debug("設定を読み込みました: %s", config)
    return config


def load_config(project_file: Optional[Path] = None) -> AppConfig:
    """プロジェクトファイルと環境変数から設定を構築する。

    Args:
        project_file: プロジェクトファイルのパス。None でカレントの actgen.yaml

    Returns:
        構築した設定
    """
    path = project_file if project_file is not None else Path(PROJECT_FILE_NAME)
    return load_config_from_env(load_project_file(path))


def apply_overrides(config: AppConfig, **overrides: Any) -> AppConfig:
    """CLI 引数を設定に適用する。

    None 以外の値が指定されている場合のみ上書きする。

    Args:
        config: ベースとなる設定
        **overrides: AppConfig のフィールド名をキーとする上書き値

    Returns:
        上書き後の設定
    """
    known = {f.name for f in fields(AppConfig)}
    for key, value in overrides.items():
        if key not in known:
            raise TypeError(f"未知の設定項目です: {key}")
        if value is not None:
            setattr(config, key, value)
    return config
