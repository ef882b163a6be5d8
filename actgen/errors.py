"""
エラー定義 — 例外クラスと判別可能な操作結果

内部で送出する例外と、公開操作が返す成功/失敗の判別結果を定義する。

主な構成:
  - ActgenError: 全例外の基底クラス
  - ValidationError / LifecycleError / PersistenceError: 内部で送出される例外
  - ErrorKind: 公開操作が返すエラー種別
  - OperationResult: 成功/失敗を判別できる操作結果
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional


# ---------------------------------------------------------------------------
# 例外クラス
# ---------------------------------------------------------------------------

class ActgenError(Exception):
    """actgen の全例外の基底クラス。"""


class ValidationError(ActgenError):
    """セッション設定や記録するパラメータが不正な場合の例外。"""


class LifecycleError(ActgenError):
    """ブラウザの起動に失敗した場合の例外。"""


class PersistenceError(ActgenError):
    """スナップショットの読み込み・解析に失敗した場合の例外。"""


# ---------------------------------------------------------------------------
# エラー種別
# ---------------------------------------------------------------------------

class ErrorKind(enum.Enum):
    """公開操作が返すエラー種別。"""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    LIFECYCLE = "lifecycle"
    PERSISTENCE = "persistence"
    ACTION = "action"


_EXCEPTION_KINDS: dict[type[ActgenError], ErrorKind] = {
    ValidationError: ErrorKind.VALIDATION,
    LifecycleError: ErrorKind.LIFECYCLE,
    PersistenceError: ErrorKind.PERSISTENCE,
}


# ---------------------------------------------------------------------------
# OperationResult
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OperationResult:
    """公開操作の結果。成功時は value、失敗時は error_kind と message を持つ。

    Attributes:
        ok: 成功した場合は True
        value: 成功時の戻り値
        error_kind: 失敗時のエラー種別
        message: 失敗時のメッセージ
    """

    ok: bool
    value: Any = None
    error_kind: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, value: Any = None) -> OperationResult:
        """成功結果を生成する。"""
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> OperationResult:
        """失敗結果を生成する。"""
        return cls(ok=False, error_kind=kind, message=message)

    @classmethod
    def from_exception(cls, exc: ActgenError) -> OperationResult:
        """actgen の例外を対応するエラー種別の失敗結果に変換する。

        Args:
            exc: 変換対象の例外

        Returns:
            失敗結果
        """
        kind = next(
            (k for t, k in _EXCEPTION_KINDS.items() if isinstance(exc, t)),
            ErrorKind.VALIDATION,
        )
        return cls.failure(kind, str(exc))

    def to_payload(self) -> dict[str, Any]:
        """ツール呼び出し規約の辞書形式に変換する。

        Returns:
            成功時は {"result": ...}、失敗時は {"error": ..., "kind": ...}
        """
        if self.ok:
            return {"result": self.value}
        assert self.error_kind is not None
        return {"error": self.message, "kind": self.error_kind.value}
