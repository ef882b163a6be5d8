"""
TestAssembler — 変換済みステップから pytest-playwright テストを組み立てる

StepTranslator の出力をまとめて 1 つのテストモジュールのソースを生成する。
テンプレートは Jinja2（templates/test_module.py.j2）で描画する。

命名規則:
  - テスト名: {プレフィックス}_{セッション開始日（UTC, YYYY-MM-DD）}
  - 関数名: テスト名を識別子に正規化し、test で始まらなければ test_ を付与
  - ファイル名: {正規化プレフィックス}_{セッション ID}.py
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader

from .models import Session
from .translator import TranslatedStep

logger = logging.getLogger(__name__)

# テンプレートディレクトリのパス
_TEMPLATES_DIR = Path(__file__).parent / "templates"
_TEMPLATE_NAME = "test_module.py.j2"

SCRIPT_EXTENSION = "py"

# 全テストが必要とする import（宣言 + 検証）
BASELINE_IMPORTS: frozenset[str] = frozenset({"Page", "expect"})

# import 名 → モジュール
_IMPORT_SOURCES: dict[str, str] = {
    "Page": "playwright.sync_api",
    "BrowserContext": "playwright.sync_api",
    "Browser": "playwright.sync_api",
    "expect": "playwright.sync_api",
    "Path": "pathlib",
    "re": "re",
}

_STDLIB_MODULES = frozenset({"pathlib", "re"})

# フィクスチャ名 → 型注釈（引数の並び順もこの順）
_FIXTURE_TYPES: dict[str, str] = {
    "page": "Page",
    "context": "BrowserContext",
    "browser": "Browser",
}

_NON_IDENTIFIER = re.compile(r"[^a-z0-9_]")


def sanitize_prefix(prefix: str) -> str:
    """プレフィックスをファイル名用に正規化する。"""
    return _NON_IDENTIFIER.sub("_", prefix.lower())


def output_file_path(session: Session) -> Path:
    """生成テストの出力先パスを返す。"""
    prefix = sanitize_prefix(session.options.test_name_prefix)
    return Path(session.options.output_path) / f"{prefix}_{session.id}.{SCRIPT_EXTENSION}"


def _start_date(start_time_ms: int) -> str:
    return datetime.fromtimestamp(start_time_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d")


def _single_line(text: str) -> str:
    return " ".join(text.split())


# ---------------------------------------------------------------------------
# GeneratedTestCase
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GeneratedTestCase:
    """1 回の生成要求で作られるテストケース。生成後は変更しない。

    Attributes:
        name: テスト名
        session_id: 生成元のセッション ID
        steps: 変換済みステップ（記録順）
        imports: 必要な import 名
        fixtures: page 以外に必要なフィクスチャ名
        include_comments: 生成コードにコメントを含めるか
    """

    __test__ = False

    name: str
    session_id: str
    steps: tuple[TranslatedStep, ...]
    imports: frozenset[str]
    fixtures: tuple[str, ...] = ()
    include_comments: bool = True

    @property
    def lines(self) -> list[str]:
        """ステートメントを記録順で返す。"""
        return [step.line for step in self.steps]

    @property
    def function_name(self) -> str:
        """テスト関数名を返す。"""
        name = _NON_IDENTIFIER.sub("_", self.name.lower())
        return name if name.startswith("test") else f"test_{name}"


# ---------------------------------------------------------------------------
# TestAssembler 本体
# ---------------------------------------------------------------------------

class TestAssembler:
    """変換済みステップを 1 つのテストモジュールに組み立てる。

    使用例::

        translation = translator.translate_all(session.actions)
        test_case = assembler.build(session, translation.steps)
        source = assembler.render(test_case)
    """

    __test__ = False

    def __init__(self, templates_dir: Optional[Path] = None) -> None:
        """Jinja2 環境を初期化する。

        Args:
            templates_dir: テンプレートディレクトリ。None で同梱テンプレート
        """
        self._env = Environment(
            loader=FileSystemLoader(str(templates_dir or _TEMPLATES_DIR)),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def build(self, session: Session, steps: list[TranslatedStep]) -> GeneratedTestCase:
        """セッションと変換済みステップからテストケースを組み立てる。

        Args:
            session: 生成元のセッション
            steps: 変換済みステップ（記録順）

        Returns:
            テストケース
        """
        imports = set(BASELINE_IMPORTS)
        fixtures: set[str] = set()
        for step in steps:
            imports |= step.imports
            fixtures |= step.fixtures

        unknown = sorted(f for f in fixtures if f not in _FIXTURE_TYPES)
        if unknown:
            raise ValueError(f"未知のフィクスチャです: {', '.join(unknown)}")

        ordered_fixtures = tuple(
            name for name in _FIXTURE_TYPES if name in fixtures and name != "page"
        )
        imports.update(_FIXTURE_TYPES[name] for name in ordered_fixtures)

        return GeneratedTestCase(
            name=f"{session.options.test_name_prefix}_{_start_date(session.start_time)}",
            session_id=session.id,
            steps=tuple(steps),
            imports=frozenset(imports),
            fixtures=ordered_fixtures,
            include_comments=session.options.include_comments,
        )

    def render(self, test_case: GeneratedTestCase) -> str:
        """テストケースを Python ソースに描画する。

        Args:
            test_case: テストケース

        Returns:
            テストモジュールのソース

        Raises:
            ValueError: 出所の分からない import 名が含まれる場合
        """
        template = self._env.get_template(_TEMPLATE_NAME)
        signature = ", ".join(
            f"{name}: {_FIXTURE_TYPES[name]}" for name in ("page", *test_case.fixtures)
        )
        steps = [
            {"line": step.line, "comment": _single_line(step.tool_name)}
            for step in test_case.steps
        ]
        return template.render(
            session_id=_single_line(test_case.session_id),
            include_comments=test_case.include_comments,
            import_lines=self._import_lines(test_case.imports),
            function_name=test_case.function_name,
            signature=signature,
            steps=steps,
        )

    @staticmethod
    def _import_lines(names: frozenset[str]) -> list[str]:
        """import 文を標準ライブラリ → サードパーティの順に並べて返す。"""
        by_module: dict[str, set[str]] = {}
        for name in names:
            module = _IMPORT_SOURCES.get(name)
            if module is None:
                raise ValueError(f"import 元が不明です: {name}")
            by_module.setdefault(module, set()).add(name)

        stdlib: list[str] = []
        third_party: list[str] = []
        for module in sorted(by_module):
            members = sorted(by_module[module])
            if members == [module]:
                line = f"import {module}"
            else:
                line = f"from {module} import {', '.join(members)}"
            (stdlib if module in _STDLIB_MODULES else third_party).append(line)

        if stdlib and third_party:
            return [*stdlib, "", *third_party]
        return stdlib + third_party
