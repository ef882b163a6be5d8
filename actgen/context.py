"""
ExecutionContext — 呼び出し元が保持する実行コンテキスト

セッションレジストリと共有ブラウザの状態をまとめて保持する。
グローバル変数は使わず、各操作にこのオブジェクトを参照渡しする。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .lifecycle import LifecycleState
from .store import SessionStore


@dataclass
class ExecutionContext:
    """1 つの実行単位（MCP サーバー、CLI 呼び出し等）の共有状態。

    Attributes:
        store: 記録セッションのレジストリ
        lifecycle: 共有ブラウザの状態
        codegen_session_id: 現在の記録セッション ID。未開始時は None
    """

    store: SessionStore = field(default_factory=SessionStore)
    lifecycle: LifecycleState = field(default_factory=LifecycleState)
    codegen_session_id: Optional[str] = None
