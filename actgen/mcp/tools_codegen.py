"""
テスト生成ツール — 記録セッションの開始・記録・生成・終了・永続化

MCP サーバーに登録するテスト生成ツールを定義する。
各ツールは CodegenService の OperationResult を
{"result": ...} / {"error": ..., "kind": ...} 形式の辞書で返す。

主なツール:
  - start_codegen_session / end_codegen_session: セッションの開始・終了
  - record_action: アクションの記録
  - generate_test: テストコードの生成
  - list_saved_sessions / load_session / import_session: スナップショット操作
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

from fastmcp import FastMCP

from ..errors import ErrorKind, OperationResult
from ..generator import CodegenService, GenerationResult
from ..models import Session

logger = logging.getLogger(__name__)


def _session_summary(session: Session) -> dict[str, Any]:
    return {
        "sessionId": session.id,
        "actionCount": len(session.actions),
        "startTime": session.start_time,
        "endTime": session.end_time,
    }


def _generate_and_save(service: CodegenService, session_id: str) -> OperationResult:
    """テストを生成し、続けてスナップショットを保存する。"""
    generated = service.generate_test(session_id)
    if not generated.ok:
        return generated

    saved = service.save_session(session_id)
    if not saved.ok:
        return saved
    return generated


def build_codegen_tools(service: CodegenService) -> list[Callable[..., Any]]:
    """テスト生成ツールの関数一覧を生成する。

    Args:
        service: ツールが操作する CodegenService

    Returns:
        MCP に登録する非同期関数のリスト
    """

    async def start_codegen_session(
        output_path: Optional[str] = None,
        test_name_prefix: Optional[str] = None,
        include_comments: Optional[bool] = None,
    ) -> dict[str, Any]:
        """Start a new session to record browser actions for test generation.

        Args:
            output_path: Directory where the generated tests will be saved
            test_name_prefix: Prefix for generated test names
            include_comments: Whether to include comments in the generated code

        Returns:
            Session id and status message, or an error payload
        """
        result = service.start_session(output_path, test_name_prefix, include_comments)
        if not result.ok:
            return result.to_payload()

        session: Session = result.value
        return {"result": {
            "sessionId": session.id,
            "message": (
                "Code generation session started. "
                "Browser actions will now be recorded for test generation."
            ),
        }}

    async def record_action(
        tool_name: str,
        parameters: dict[str, Any],
        session_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """Record a browser action to the current code generation session.

        Args:
            tool_name: Name of the tool/action being recorded
            parameters: Parameters of the action
            session_id: ID of the session to record to (defaults to current session)

        Returns:
            Status message with the action count, or an error payload
        """
        result = service.record_action(tool_name, parameters, session_id=session_id)
        if not result.ok:
            return result.to_payload()

        target = session_id or service.context.codegen_session_id
        session = service.context.store.fetch(target) if target else None
        return {"result": {
            "message": f"Action '{tool_name}' recorded to session {target}",
            "actionCount": len(session.actions) if session is not None else 0,
        }}

    async def generate_test(session_id: Optional[str] = None) -> dict[str, Any]:
        """Generate a pytest-playwright test from the recorded browser actions.

        Ends the session if it is still open, writes the test file and
        saves a session snapshot.

        Args:
            session_id: ID of the session to generate code from (defaults to current session)

        Returns:
            Generated code and file path, or an error payload
        """
        found = service.get_session(session_id)
        if not found.ok:
            return found.to_payload()

        session: Session = found.value
        service.end_session(session.id)

        result = _generate_and_save(service, session.id)
        if not result.ok:
            return result.to_payload()

        generated: GenerationResult = result.value
        payload = generated.to_dict()
        payload["message"] = f"Test code generated and saved to {generated.file_path}"
        return {"result": payload}

    async def end_codegen_session(
        session_id: Optional[str] = None,
        generate_test: bool = False,
    ) -> dict[str, Any]:
        """End the current code generation session.

        Args:
            session_id: ID of the session to end (defaults to current session)
            generate_test: Whether to generate a test when ending the session

        Returns:
            Status message, or an error payload
        """
        ended = service.end_session(session_id)
        if not ended.ok:
            return ended.to_payload()

        session: Session = ended.value
        if generate_test:
            result = _generate_and_save(service, session.id)
            if not result.ok:
                return OperationResult.failure(
                    result.error_kind or ErrorKind.PERSISTENCE,
                    f"Session ended but failed to generate test: {result.message}",
                ).to_payload()
            generated: GenerationResult = result.value
            payload = generated.to_dict()
            payload["message"] = "Code generation session ended and test generated."
        else:
            saved = service.save_session(session.id)
            if not saved.ok:
                return saved.to_payload()
            payload = {
                "message": "Code generation session ended.",
                "sessionCount": len(session.actions),
            }

        if service.context.codegen_session_id == session.id:
            service.clear_current()
        return {"result": payload}

    async def list_saved_sessions(directory: Optional[str] = None) -> dict[str, Any]:
        """List the ids of session snapshots saved on disk.

        Args:
            directory: Snapshot directory (defaults to the configured sessions directory)

        Returns:
            List of session ids
        """
        result = service.list_saved_sessions(Path(directory) if directory else None)
        return {"result": {"sessionIds": result.value}}

    async def load_session(session_id: str, directory: Optional[str] = None) -> dict[str, Any]:
        """Load a saved session snapshot so that a test can be generated from it again.

        Args:
            session_id: ID of the saved session
            directory: Snapshot directory (defaults to the configured sessions directory)

        Returns:
            Session summary, or an error payload
        """
        result = service.load_session(session_id, Path(directory) if directory else None)
        if not result.ok:
            return result.to_payload()
        return {"result": _session_summary(result.value)}

    async def import_session(path: str) -> dict[str, Any]:
        """Import a session snapshot from an arbitrary file.

        Args:
            path: Path to the snapshot JSON file

        Returns:
            Session summary, or an error payload
        """
        result = service.import_session(Path(path))
        if not result.ok:
            return result.to_payload()
        return {"result": _session_summary(result.value)}

    return [
        start_codegen_session,
        record_action,
        generate_test,
        end_codegen_session,
        list_saved_sessions,
        load_session,
        import_session,
    ]


def register_codegen_tools(mcp: FastMCP, service: CodegenService) -> None:
    """テスト生成ツールを MCP サーバーに登録する。

    Args:
        mcp: FastMCP サーバーインスタンス
        service: ツールが操作する CodegenService
    """
    for func in build_codegen_tools(service):
        mcp.tool(func)
        logger.debug("ツールを登録しました: %s", func.__name__)
