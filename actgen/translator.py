"""
StepTranslator — 記録アクションから Python ステートメントへの変換

1 つのアクションを 0 行または 1 行の pytest-playwright（sync API）コードに変換する。
変換規則はアクション種別（ActionKind）をキーとするテーブルに登録し、
新しい種別は register() で追加する。

変換規則:
  - ツール名はエイリアステーブルで ActionKind に解決する（旧名も同じ種別になる）
  - パラメータ値は str() した上でダブルクォートの文字列リテラルとして埋め込む
  - 存在しないパラメータは空文字列リテラル "" で置き換え、行は必ず出力する
  - 未対応のツール名は行を出力せず、UnsupportedAction として記録する
"""

from __future__ import annotations

import enum
import logging
import string
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .models import Action

logger = logging.getLogger(__name__)

# 存在しないパラメータの代替値
EMPTY_PLACEHOLDER = '""'


# ---------------------------------------------------------------------------
# アクション種別
# ---------------------------------------------------------------------------

class ActionKind(str, enum.Enum):
    """変換可能なアクション種別。"""

    NAVIGATE = "navigate"
    GO_BACK = "go_back"
    GO_FORWARD = "go_forward"
    REFRESH = "refresh"
    CLOSE_BROWSER = "close_browser"
    FILL = "fill"
    CLICK = "click"
    GET_TEXT = "get_text"
    SELECT_OPTION = "select_option"
    CHECK = "check"
    UNCHECK = "uncheck"
    HOVER = "hover"
    PRESS_KEY = "press_key"
    WAIT_FOR_ELEMENT = "wait_for_element"
    SCREENSHOT = "screenshot"
    SAVE_TO_FILE = "save_to_file"
    EXPORT_PDF = "export_pdf"
    EXPECT_RESPONSE = "expect_response"
    ASSERT_RESPONSE = "assert_response"
    SET_USER_AGENT = "set_user_agent"
    GET_USER_AGENT = "get_user_agent"
    GET_VISIBLE_TEXT = "get_visible_text"
    GET_VISIBLE_HTML = "get_visible_html"
    LIST_INTERACTIVE_ELEMENTS = "list_interactive_elements"
    EVALUATE_JS = "evaluate_js"
    EXTRACT_DATA = "extract_data"
    EXPECT_VISIBLE = "expect_visible"
    EXPECT_TEXT = "expect_text"


# ツール名 → アクション種別（playwright_* は旧ツール名）
TOOL_ALIASES: dict[str, ActionKind] = {
    "navigate": ActionKind.NAVIGATE,
    "playwright_navigate": ActionKind.NAVIGATE,
    "goBack": ActionKind.GO_BACK,
    "goForward": ActionKind.GO_FORWARD,
    "refreshPage": ActionKind.REFRESH,
    "closeBrowser": ActionKind.CLOSE_BROWSER,
    "type": ActionKind.FILL,
    "playwright_fill": ActionKind.FILL,
    "click": ActionKind.CLICK,
    "playwright_click": ActionKind.CLICK,
    "getText": ActionKind.GET_TEXT,
    "getTextTool": ActionKind.GET_TEXT,
    "selectOption": ActionKind.SELECT_OPTION,
    "playwright_select": ActionKind.SELECT_OPTION,
    "check": ActionKind.CHECK,
    "uncheck": ActionKind.UNCHECK,
    "hover": ActionKind.HOVER,
    "playwright_hover": ActionKind.HOVER,
    "pressKey": ActionKind.PRESS_KEY,
    "waitForElement": ActionKind.WAIT_FOR_ELEMENT,
    "screenshot": ActionKind.SCREENSHOT,
    "playwright_screenshot": ActionKind.SCREENSHOT,
    "saveToFile": ActionKind.SAVE_TO_FILE,
    "exportPdf": ActionKind.EXPORT_PDF,
    "expectResponse": ActionKind.EXPECT_RESPONSE,
    "playwright_expect_response": ActionKind.EXPECT_RESPONSE,
    "assertResponse": ActionKind.ASSERT_RESPONSE,
    "playwright_assert_response": ActionKind.ASSERT_RESPONSE,
    "setUserAgent": ActionKind.SET_USER_AGENT,
    "playwright_custom_user_agent": ActionKind.SET_USER_AGENT,
    "getUserAgent": ActionKind.GET_USER_AGENT,
    "getVisibleText": ActionKind.GET_VISIBLE_TEXT,
    "getVisibleHtml": ActionKind.GET_VISIBLE_HTML,
    "listInteractiveElements": ActionKind.LIST_INTERACTIVE_ELEMENTS,
    "evaluateJs": ActionKind.EVALUATE_JS,
    "extractData": ActionKind.EXTRACT_DATA,
    "expectVisible": ActionKind.EXPECT_VISIBLE,
    "expectText": ActionKind.EXPECT_TEXT,
}


def resolve_kind(tool_name: str) -> Optional[ActionKind]:
    """ツール名をアクション種別に解決する。未対応の場合は None。"""
    return TOOL_ALIASES.get(tool_name)


# ---------------------------------------------------------------------------
# 値の埋め込み
# ---------------------------------------------------------------------------

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def _escape_char(ch: str) -> str:
    if ch in _ESCAPES:
        return _ESCAPES[ch]
    if ch.isprintable():
        return ch
    # 制御文字・区切り文字はコード値でエスケープ
    code = ord(ch)
    if code <= 0xFF:
        return f"\\x{code:02x}"
    if code <= 0xFFFF:
        return f"\\u{code:04x}"
    return f"\\U{code:08x}"


def _escape_string(s: str) -> str:
    """Python 文字列リテラル用にエスケープする。

    Args:
        s: エスケープ対象の文字列

    Returns:
        エスケープ済み文字列
    """
    return "".join(_escape_char(ch) for ch in s)


def quote(value: Any) -> str:
    """パラメータ値を文字列リテラルに変換する。None は空文字列リテラルになる。"""
    if value is None:
        return EMPTY_PLACEHOLDER
    return f'"{_escape_string(str(value))}"'


# ---------------------------------------------------------------------------
# 変換規則
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Statement:
    """format 形式のテンプレートから 1 行を生成する変換関数。

    テンプレート中の {name} はパラメータ name の文字列リテラルに置き換わる。
    波括弧そのものは {{ }} で記述する。

    Attributes:
        template: ステートメントのテンプレート
    """

    template: str

    @property
    def params(self) -> tuple[str, ...]:
        """テンプレートが参照するパラメータ名を出現順で返す。"""
        names = (
            name for _, name, _, _ in string.Formatter().parse(self.template)
            if name
        )
        return tuple(dict.fromkeys(names))

    def __call__(self, parameters: Mapping[str, Any]) -> str:
        values = {name: quote(parameters.get(name)) for name in self.params}
        return self.template.format(**values)


StepFunc = Callable[[Mapping[str, Any]], str]


@dataclass(frozen=True)
class StepRule:
    """アクション種別ごとの変換規則。

    Attributes:
        kind: アクション種別
        render: パラメータから 1 行を生成する関数
        imports: 生成コードが必要とする import 名
        fixtures: 生成コードが必要とする pytest フィクスチャ名
    """

    kind: ActionKind
    render: StepFunc
    imports: frozenset[str] = frozenset()
    fixtures: frozenset[str] = frozenset()


@dataclass(frozen=True)
class TranslatedStep:
    """変換済みの 1 ステップ。

    Attributes:
        line: 生成されたステートメント（インデントなし）
        tool_name: 元のツール名
        kind: アクション種別
        imports: 必要な import 名
        fixtures: 必要な pytest フィクスチャ名
    """

    line: str
    tool_name: str
    kind: ActionKind
    imports: frozenset[str] = frozenset()
    fixtures: frozenset[str] = frozenset()


@dataclass(frozen=True)
class UnsupportedAction:
    """変換できなかったアクションの診断情報。

    Attributes:
        index: セッション内のアクション位置（0 始まり）
        tool_name: ツール名
    """

    index: int
    tool_name: str

    @property
    def message(self) -> str:
        return f"未対応のアクションをスキップしました: {self.tool_name} (#{self.index})"


@dataclass
class TranslationResult:
    """アクション列の変換結果。

    Attributes:
        steps: 変換済みステップ（元の順序を維持）
        diagnostics: 未対応アクションの診断情報
    """

    steps: list[TranslatedStep] = field(default_factory=list)
    diagnostics: list[UnsupportedAction] = field(default_factory=list)


# ---------------------------------------------------------------------------
# StepTranslator 本体
# ---------------------------------------------------------------------------

class StepTranslator:
    """アクション種別をキーとする変換テーブル。

    使用例::

        translator = StepTranslator()
        translator.register(ActionKind.NAVIGATE, Statement("page.goto({url})"))
        step = translator.translate(action)
    """

    def __init__(self) -> None:
        """空の変換テーブルを初期化する。"""
        self._rules: dict[ActionKind, StepRule] = {}

    def register(
        self,
        kind: ActionKind,
        render: StepFunc,
        *,
        imports: Iterable[str] = (),
        fixtures: Iterable[str] = (),
    ) -> None:
        """アクション種別の変換規則を登録する。

        同じ種別が登録済みの場合は上書きする（警告を出力）。

        Args:
            kind: アクション種別
            render: パラメータから 1 行を生成する純粋関数
            imports: 生成コードが必要とする import 名
            fixtures: 生成コードが必要とする pytest フィクスチャ名
        """
        if kind in self._rules:
            logger.warning("アクション種別 '%s' の変換規則を上書きします", kind.value)

        self._rules[kind] = StepRule(
            kind=kind,
            render=render,
            imports=frozenset(imports),
            fixtures=frozenset(fixtures),
        )

    def has(self, kind: ActionKind) -> bool:
        """指定種別の変換規則が登録されているかを返す。"""
        return kind in self._rules

    def missing_kinds(self) -> list[ActionKind]:
        """変換規則が未登録のアクション種別を返す。"""
        return [kind for kind in ActionKind if kind not in self._rules]

    def translate(self, action: Action) -> Optional[TranslatedStep]:
        """1 つのアクションを変換する。

        Args:
            action: 記録されたアクション

        Returns:
            変換済みステップ。未対応のツール名の場合は None
        """
        kind = resolve_kind(action.tool_name)
        rule = self._rules.get(kind) if kind is not None else None
        if rule is None:
            return None

        return TranslatedStep(
            line=rule.render(action.parameters),
            tool_name=action.tool_name,
            kind=rule.kind,
            imports=rule.imports,
            fixtures=rule.fixtures,
        )

    def translate_all(self, actions: Iterable[Action]) -> TranslationResult:
        """アクション列を順に変換する。

        未対応のアクションは警告ログを出して読み飛ばし、残りの変換を続ける。

        Args:
            actions: 記録順のアクション列

        Returns:
            変換結果
        """
        result = TranslationResult()
        for index, action in enumerate(actions):
            step = self.translate(action)
            if step is None:
                diagnostic = UnsupportedAction(index=index, tool_name=action.tool_name)
                logger.warning(diagnostic.message)
                result.diagnostics.append(diagnostic)
                continue
            result.steps.append(step)
        return result


# ---------------------------------------------------------------------------
# 標準の変換規則
# ---------------------------------------------------------------------------

_RESPONSE_WAIT = 'page.wait_for_event("response", lambda response: response.url == {url})'


def _extract_data(parameters: Mapping[str, Any]) -> str:
    """selectors（キー → CSS セレクタ）から各要素のテキストを集める 1 行を生成する。

    includeHtml が真の場合は {"text": ..., "html": ...} を値にする。
    """
    selectors = parameters.get("selectors")
    if not isinstance(selectors, Mapping):
        selectors = {}

    entries = []
    for key, selector in selectors.items():
        text = f"page.text_content({quote(selector)})"
        if parameters.get("includeHtml"):
            value = f'{{"text": {text}, "html": page.inner_html({quote(selector)})}}'
        else:
            value = text
        entries.append(f"{quote(key)}: {value}")
    return "extracted = {" + ", ".join(entries) + "}"


def register_builtin_steps(translator: StepTranslator) -> None:
    """標準の変換規則を登録する。

    Args:
        translator: 登録先の StepTranslator
    """
    # ナビゲーション
    translator.register(ActionKind.NAVIGATE, Statement("page.goto({url})"))
    translator.register(ActionKind.GO_BACK, Statement("page.go_back()"))
    translator.register(ActionKind.GO_FORWARD, Statement("page.go_forward()"))
    translator.register(ActionKind.REFRESH, Statement("page.reload()"))
    translator.register(
        ActionKind.CLOSE_BROWSER, Statement("browser.close()"),
        imports=["Browser"], fixtures=["browser"],
    )

    # 操作
    translator.register(ActionKind.FILL, Statement("page.fill({selector}, {text})"))
    translator.register(ActionKind.CLICK, Statement("page.click({selector})"))
    translator.register(
        ActionKind.SELECT_OPTION, Statement("page.select_option({selector}, {value})"),
    )
    translator.register(ActionKind.CHECK, Statement("page.check({selector})"))
    translator.register(ActionKind.UNCHECK, Statement("page.uncheck({selector})"))
    translator.register(ActionKind.HOVER, Statement("page.hover({selector})"))
    translator.register(ActionKind.PRESS_KEY, Statement("page.keyboard.press({key})"))
    translator.register(
        ActionKind.WAIT_FOR_ELEMENT, Statement("page.wait_for_selector({selector})"),
    )

    # 取得
    translator.register(
        ActionKind.GET_TEXT, Statement("text = page.text_content({selector})"),
    )
    translator.register(
        ActionKind.GET_USER_AGENT,
        Statement('user_agent = page.evaluate("() => navigator.userAgent")'),
    )
    translator.register(
        ActionKind.GET_VISIBLE_TEXT, Statement('visible_text = page.inner_text("body")'),
    )
    translator.register(
        ActionKind.GET_VISIBLE_HTML, Statement("visible_html = page.inner_html({selector})"),
    )
    translator.register(
        ActionKind.LIST_INTERACTIVE_ELEMENTS,
        Statement(
            'elements = page.query_selector_all('
            '"a, button, [tabindex], [contenteditable]")'
        ),
    )
    translator.register(
        ActionKind.EVALUATE_JS, Statement("result = page.evaluate({expression})"),
    )
    translator.register(ActionKind.EXTRACT_DATA, _extract_data)

    # 出力
    translator.register(ActionKind.SCREENSHOT, Statement("page.screenshot(path={path})"))
    translator.register(ActionKind.EXPORT_PDF, Statement("page.pdf(path={filePath})"))
    translator.register(
        ActionKind.SAVE_TO_FILE,
        Statement('Path({filePath}).write_text({content}, encoding="utf-8")'),
        imports=["Path"],
    )

    # レスポンス・ユーザーエージェント
    translator.register(ActionKind.EXPECT_RESPONSE, Statement(_RESPONSE_WAIT))
    translator.register(ActionKind.ASSERT_RESPONSE, Statement("response = " + _RESPONSE_WAIT))
    translator.register(
        ActionKind.SET_USER_AGENT,
        Statement('context.set_extra_http_headers({{"User-Agent": {userAgent}}})'),
        imports=["BrowserContext"], fixtures=["context"],
    )

    # 検証
    translator.register(
        ActionKind.EXPECT_VISIBLE,
        Statement("expect(page.locator({selector})).to_be_visible()"),
    )
    translator.register(
        ActionKind.EXPECT_TEXT,
        Statement("expect(page.locator({selector})).to_contain_text({text})"),
    )


def create_default_translator() -> StepTranslator:
    """標準の変換規則を登録済みの StepTranslator を生成する。"""
    translator = StepTranslator()
    register_builtin_steps(translator)
    return translator
