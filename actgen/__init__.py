"""
actgen — ブラウザ操作の記録から pytest-playwright テストを生成するツール

主な構成:
  - store: 記録セッションのレジストリ
  - translator: アクション → ステートメント変換テーブル
  - assembler: テストモジュールの組み立て
  - persistence: セッションスナップショットの保存・読み込み
  - lifecycle: 共有ブラウザのライフサイクル管理
  - generator: 公開操作（CodegenService）
"""

from __future__ import annotations

from .errors import ErrorKind, OperationResult
from .generator import CodegenService, GenerationResult
from .models import Action, CodegenOptions, Session

__version__ = "0.1.0"

__all__ = [
    "Action",
    "CodegenOptions",
    "CodegenService",
    "ErrorKind",
    "GenerationResult",
    "OperationResult",
    "Session",
    "__version__",
]
