"""
CodegenService — 記録セッションとテスト生成の公開操作

SessionStore・StepTranslator・TestAssembler・SessionPersistence を束ね、
呼び出し側（MCP ツール、CLI）に公開する操作を提供する。
全ての操作は OperationResult を返し、例外を呼び出し側に送出しない。

主な操作:
  - start_session / record_action / end_session: 記録
  - generate_test: テストコードの生成とファイル出力
  - save_session / load_session / list_saved_sessions / import_session: 永続化
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from .assembler import GeneratedTestCase, TestAssembler, output_file_path
from .config import AppConfig
from .context import ExecutionContext
from .errors import ActgenError, ErrorKind, OperationResult
from .persistence import SessionPersistence
from .translator import StepTranslator, UnsupportedAction, create_default_translator

logger = logging.getLogger(__name__)

_NO_ACTIVE_SESSION = "No active code generation session found. Start a session first."


@dataclass
class GenerationResult:
    """テスト生成の結果。

    Attributes:
        test_code: 生成したテストモジュールのソース
        file_path: 書き出したファイルのパス
        session_id: 生成元のセッション ID
        test_case: 生成したテストケース
        diagnostics: 未対応アクションの診断情報
    """

    test_code: str
    file_path: Path
    session_id: str
    test_case: GeneratedTestCase
    diagnostics: list[UnsupportedAction] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """ツール応答用の辞書に変換する。"""
        return {
            "testCode": self.test_code,
            "filePath": str(self.file_path),
            "sessionId": self.session_id,
            "stepCount": len(self.test_case.steps),
            "unsupported": [d.tool_name for d in self.diagnostics],
        }


class CodegenService:
    """記録セッションとテスト生成の公開操作。

    使用例::

        service = CodegenService(AppConfig(output_path="tests"))
        session = service.start_session().value
        service.record_action("navigate", {"url": "https://example.com"})
        result = service.generate_test(session.id)
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        context: Optional[ExecutionContext] = None,
        translator: Optional[StepTranslator] = None,
        assembler: Optional[TestAssembler] = None,
    ) -> None:
        """CodegenService を初期化する。

        Args:
            config: 実行時設定。None でデフォルト値
            context: 実行コンテキスト。None で新規作成
            translator: ステップ変換テーブル。None で標準の変換規則
            assembler: テスト組み立て。None で同梱テンプレート
        """
        self.config = config or AppConfig()
        self.context = context or ExecutionContext()
        self.translator = translator or create_default_translator()
        self.assembler = assembler or TestAssembler()
        self.persistence = SessionPersistence(
            self.context.store, self.config.effective_sessions_dir,
        )

    # -------------------------------------------------------------------
    # 記録
    # -------------------------------------------------------------------

    def start_session(
        self,
        output_path: Optional[str] = None,
        test_name_prefix: Optional[str] = None,
        include_comments: Optional[bool] = None,
    ) -> OperationResult:
        """新しい記録セッションを開始し、現在のセッションにする。

        Returns:
            成功時は Session。設定が不正な場合は VALIDATION
        """
        try:
            options = self.config.to_codegen_options().merged({
                "output_path": output_path,
                "test_name_prefix": test_name_prefix,
                "include_comments": include_comments,
            })
        except PydanticValidationError as exc:
            return OperationResult.failure(
                ErrorKind.VALIDATION, f"セッション設定が不正です: {exc}",
            )
        except ActgenError as exc:
            return OperationResult.from_exception(exc)

        session = self.context.store.open(options)
        self.context.codegen_session_id = session.id
        return OperationResult.success(session)

    def record_action(
        self,
        tool_name: str,
        parameters: Optional[dict[str, Any]] = None,
        result: Any = None,
        session_id: Optional[str] = None,
    ) -> OperationResult:
        """アクションをセッションに記録する。

        Args:
            tool_name: 実行されたツール名
            parameters: ツールに渡されたパラメータ
            result: ツールの実行結果（任意）
            session_id: 記録先。None で現在のセッション

        Returns:
            成功時は Action。セッションが存在しない場合は NOT_FOUND、
            パラメータが JSON で表現できない場合は VALIDATION
        """
        target = session_id or self.context.codegen_session_id
        if target is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, _NO_ACTIVE_SESSION)

        try:
            action = self.context.store.append(target, tool_name, parameters, result)
        except PydanticValidationError as exc:
            return OperationResult.failure(
                ErrorKind.VALIDATION, f"アクションが不正です: {exc}",
            )
        except ActgenError as exc:
            return OperationResult.from_exception(exc)

        if action is None:
            return self._not_found(target)
        return OperationResult.success(action)

    def end_session(self, session_id: Optional[str] = None) -> OperationResult:
        """セッションを終了する。終了済みの場合は最初の終了時刻を維持する。

        Returns:
            成功時は Session。セッションが存在しない場合は NOT_FOUND
        """
        target = session_id or self.context.codegen_session_id
        if target is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, _NO_ACTIVE_SESSION)

        session = self.context.store.close(target)
        if session is None:
            return self._not_found(target)
        return OperationResult.success(session)

    def get_session(self, session_id: Optional[str] = None) -> OperationResult:
        """セッションを返す。"""
        target = session_id or self.context.codegen_session_id
        if target is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, _NO_ACTIVE_SESSION)

        session = self.context.store.fetch(target)
        if session is None:
            return self._not_found(target)
        return OperationResult.success(session)

    def list_sessions(self) -> OperationResult:
        """メモリ上の全セッションを返す。"""
        return OperationResult.success(self.context.store.list())

    def remove_session(self, session_id: str) -> OperationResult:
        """セッションをメモリ上のレジストリから削除する。"""
        if not self.context.store.remove(session_id):
            return self._not_found(session_id)
        if self.context.codegen_session_id == session_id:
            self.context.codegen_session_id = None
        return OperationResult.success(True)

    def clear_current(self) -> None:
        """現在のセッション ID を解除する。"""
        self.context.codegen_session_id = None

    # -------------------------------------------------------------------
    # テスト生成
    # -------------------------------------------------------------------

    def build_test(self, session_id: Optional[str] = None) -> OperationResult:
        """セッションからテストケースとソースを生成する。ファイルには書き出さない。

        Returns:
            成功時は GenerationResult。セッションが存在しない場合は NOT_FOUND
        """
        target = session_id or self.context.codegen_session_id
        if target is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, _NO_ACTIVE_SESSION)

        session = self.context.store.snapshot(target)
        if session is None:
            return self._not_found(target)

        translation = self.translator.translate_all(session.actions)
        test_case = self.assembler.build(session, translation.steps)
        return OperationResult.success(GenerationResult(
            test_code=self.assembler.render(test_case),
            file_path=output_file_path(session),
            session_id=session.id,
            test_case=test_case,
            diagnostics=translation.diagnostics,
        ))

    def generate_test(self, session_id: Optional[str] = None) -> OperationResult:
        """セッションからテストを生成し、ファイルに書き出す。

        出力先ディレクトリが存在しない場合は作成する。

        Returns:
            成功時は GenerationResult。書き込みに失敗した場合は PERSISTENCE
        """
        built = self.build_test(session_id)
        if not built.ok:
            return built

        generated: GenerationResult = built.value
        path = generated.file_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(generated.test_code, encoding="utf-8")
        except OSError as exc:
            return OperationResult.failure(
                ErrorKind.PERSISTENCE,
                f"テストファイルの書き込みに失敗しました: {path}: {exc}",
            )

        logger.info(
            "テストを生成しました: %s (%d steps, %d unsupported)",
            path, len(generated.test_case.steps), len(generated.diagnostics),
        )
        return built

    # -------------------------------------------------------------------
    # 永続化
    # -------------------------------------------------------------------

    def save_session(
        self, session_id: Optional[str] = None, directory: Optional[Path] = None,
    ) -> OperationResult:
        """セッションをスナップショットとして保存する。

        Returns:
            成功時は保存先 Path
        """
        target = session_id or self.context.codegen_session_id
        if target is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, _NO_ACTIVE_SESSION)

        try:
            path = self.persistence.save(target, directory)
        except ActgenError as exc:
            return OperationResult.from_exception(exc)
        if path is None:
            return self._not_found(target)
        return OperationResult.success(path)

    def load_session(
        self, session_id: str, directory: Optional[Path] = None,
    ) -> OperationResult:
        """スナップショットを読み込み、再び生成可能な状態にする。

        Returns:
            成功時は Session。読み込みに失敗した場合は PERSISTENCE
        """
        try:
            return OperationResult.success(self.persistence.load(session_id, directory))
        except ActgenError as exc:
            return OperationResult.from_exception(exc)

    def list_saved_sessions(self, directory: Optional[Path] = None) -> OperationResult:
        """保存済みスナップショットのセッション ID を返す。失敗時は空リスト。"""
        return OperationResult.success(self.persistence.list(directory))

    def import_session(self, path: Path) -> OperationResult:
        """任意のパスのスナップショットを読み込む。

        Returns:
            成功時は Session。読み込みに失敗した場合は PERSISTENCE
        """
        try:
            return OperationResult.success(self.persistence.import_session(path))
        except ActgenError as exc:
            return OperationResult.from_exception(exc)

    @staticmethod
    def _not_found(session_id: str) -> OperationResult:
        return OperationResult.failure(
            ErrorKind.NOT_FOUND, f"Session with ID {session_id} not found.",
        )
