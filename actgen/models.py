"""
データモデル — セッション・アクション・セッション設定

記録セッションとその操作ログを Pydantic v2 モデルとして定義する。
スナップショットの JSON 形式はフィールドの alias（camelCase）で入出力する。

主な構成:
  - CodegenOptions: セッションごとのテスト生成設定
  - Action: 記録された 1 操作（追加後は不変）
  - Session: 操作ログを保持する記録セッション
"""

from __future__ import annotations

import time
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
    field_validator,
)
from pydantic_core import PydanticSerializationError, to_jsonable_python

from .errors import ValidationError


def now_ms() -> int:
    """現在時刻をエポックミリ秒で返す。"""
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# セッション設定
# ---------------------------------------------------------------------------

class CodegenOptions(BaseModel):
    """セッションごとのテスト生成設定。

    Attributes:
        output_path: 生成したテストの出力先ディレクトリ
        test_name_prefix: テスト名・ファイル名のプレフィックス
        include_comments: 生成コードにコメントを含めるか
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    output_path: StrictStr = Field(default="tests", alias="outputPath")
    test_name_prefix: StrictStr = Field(default="GeneratedTest", alias="testNamePrefix")
    include_comments: StrictBool = Field(default=True, alias="includeComments")

    @field_validator("output_path", "test_name_prefix")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("空文字列は指定できません")
        return value

    def merged(self, overrides: Optional[dict[str, Any]]) -> CodegenOptions:
        """None 以外の上書き値を適用した新しい設定を返す。

        Args:
            overrides: フィールド名（snake_case）をキーとする上書き値

        Returns:
            上書き後の設定（検証済み）
        """
        data = self.model_dump()
        for key, value in (overrides or {}).items():
            if value is not None:
                data[key] = value
        return CodegenOptions.model_validate(data)


# ---------------------------------------------------------------------------
# アクション
# ---------------------------------------------------------------------------

class Action(BaseModel):
    """記録された 1 操作。セッションに追加された後は変更されない。

    Attributes:
        tool_name: 実行されたツール名（エイリアス名を含む）
        parameters: ツールに渡されたパラメータ（JSON で表現できる値に正規化済み）
        timestamp: 記録時刻（エポックミリ秒）
        result: ツールの実行結果（任意）
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    tool_name: StrictStr = Field(..., alias="toolName")
    parameters: dict[str, Any] = Field(default_factory=dict)
    timestamp: int
    result: Any = None

    @classmethod
    def create(
        cls,
        tool_name: str,
        parameters: Optional[dict[str, Any]] = None,
        result: Any = None,
        timestamp: Optional[int] = None,
    ) -> Action:
        """パラメータを JSON 値の複製に正規化してアクションを生成する。

        呼び出し元が後から辞書を書き換えても記録内容は変わらない。
        タプルはリストに変換されるため、保存と読み込みで値が変わらない。

        Raises:
            ValidationError: パラメータが辞書でない場合、
                またはパラメータ・結果が JSON で表現できない場合
        """
        try:
            normalized = to_jsonable_python(dict(parameters or {}))
            normalized_result = to_jsonable_python(result)
        except (PydanticSerializationError, ValueError, TypeError) as exc:
            raise ValidationError(
                f"{tool_name} のパラメータを記録できません: {exc}"
            ) from exc

        return cls(
            tool_name=tool_name,
            parameters=normalized,
            timestamp=now_ms() if timestamp is None else timestamp,
            result=normalized_result,
        )


# ---------------------------------------------------------------------------
# セッション
# ---------------------------------------------------------------------------

class Session(BaseModel):
    """操作ログを保持する記録セッション。

    actions の順序は追加順であり、そのまま生成コードのステップ順になる。

    Attributes:
        id: セッション ID（UUID4 文字列）
        actions: 記録済みアクション（追加順）
        start_time: 開始時刻（エポックミリ秒）
        end_time: 終了時刻。終了前は None
        options: テスト生成設定
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    id: StrictStr = Field(..., min_length=1)
    actions: list[Action] = Field(default_factory=list)
    start_time: int = Field(..., alias="startTime")
    end_time: Optional[int] = Field(default=None, alias="endTime")
    options: CodegenOptions = Field(default_factory=CodegenOptions)

    @property
    def is_ended(self) -> bool:
        """セッションが終了済みかどうかを返す。"""
        return self.end_time is not None

    def to_json(self) -> str:
        """スナップショット用の JSON 文字列に変換する。"""
        return self.model_dump_json(by_alias=True, indent=2)
