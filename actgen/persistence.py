"""
SessionPersistence — セッションスナップショットの保存・読み込み

セッションを JSON スナップショットとしてディスクに保存し、
読み込んだスナップショットを SessionStore に再登録する。

ファイル配置:
  {保存先ディレクトリ}/session-{セッション ID}.json

スナップショットは Pydantic モデルで検証し、不正な内容は修復せずにエラーとする。
例外は import 時に id フィールドが存在しない場合のみで、新しい ID を割り当てる。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError

from .errors import PersistenceError
from .models import Session
from .store import SessionStore, new_session_id

logger = logging.getLogger(__name__)

_FILE_PREFIX = "session-"
_FILE_SUFFIX = ".json"


def snapshot_file_name(session_id: str) -> str:
    """セッション ID からスナップショットのファイル名を返す。"""
    return f"{_FILE_PREFIX}{session_id}{_FILE_SUFFIX}"


class SessionPersistence:
    """セッションスナップショットの保存・読み込み・一覧・インポート。

    使用例::

        persistence = SessionPersistence(store, Path("tests/sessions"))
        path = persistence.save(session.id)
        restored = persistence.load(session.id)
    """

    def __init__(self, store: SessionStore, sessions_dir: Path) -> None:
        """SessionPersistence を初期化する。

        Args:
            store: 読み込んだセッションの登録先
            sessions_dir: デフォルトの保存先ディレクトリ
        """
        self._store = store
        self.sessions_dir = Path(sessions_dir)

    def path_for(self, session_id: str, directory: Optional[Path] = None) -> Path:
        """スナップショットのパスを返す。

        Raises:
            PersistenceError: セッション ID がファイル名として使えない場合
        """
        name = snapshot_file_name(session_id)
        if Path(name).name != name or session_id in ("", ".", ".."):
            raise PersistenceError(f"セッション ID が不正です: {session_id!r}")
        return Path(directory or self.sessions_dir) / name

    def save(self, session_id: str, directory: Optional[Path] = None) -> Optional[Path]:
        """セッションをスナップショットとして保存する。

        保存先ディレクトリが存在しない場合は作成する。

        Args:
            session_id: 保存するセッション ID
            directory: 保存先ディレクトリ。None でデフォルト

        Returns:
            保存したファイルのパス。セッションが存在しない場合は None

        Raises:
            PersistenceError: 書き込みに失敗した場合
        """
        session = self._store.snapshot(session_id)
        if session is None:
            return None

        path = self.path_for(session_id, directory)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(session.to_json(), encoding="utf-8")
        except (OSError, PydanticSerializationError) as exc:
            raise PersistenceError(
                f"セッション {session_id} の保存に失敗しました: {path}: {exc}"
            ) from exc

        logger.info("セッションを保存しました: %s", path)
        return path

    def load(self, session_id: str, directory: Optional[Path] = None) -> Session:
        """スナップショットを読み込み、SessionStore に再登録する。

        Args:
            session_id: 読み込むセッション ID
            directory: 保存先ディレクトリ。None でデフォルト

        Returns:
            読み込んだセッション

        Raises:
            PersistenceError: 読み込み・解析に失敗した場合、または ID が一致しない場合
        """
        path = self.path_for(session_id, directory)
        try:
            session = Session.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, PydanticValidationError) as exc:
            raise PersistenceError(
                f"セッション {session_id} の読み込みに失敗しました: {exc}"
            ) from exc

        if session.id != session_id:
            raise PersistenceError(
                f"セッション {session_id} のスナップショットに別の ID が記録されています: "
                f"{session.id}"
            )

        return self._store.register(session)

    def list(self, directory: Optional[Path] = None) -> list[str]:
        """保存済みスナップショットのセッション ID を名前順で返す。

        ディレクトリが存在しない場合や読み取りに失敗した場合は空リストを返す。

        Args:
            directory: 保存先ディレクトリ。None でデフォルト

        Returns:
            セッション ID のリスト
        """
        target = Path(directory or self.sessions_dir)
        if not target.exists():
            return []

        try:
            names = sorted(p.name for p in target.iterdir() if p.is_file())
        except OSError as exc:
            logger.warning("保存済みセッションの一覧取得に失敗しました: %s: %s", target, exc)
            return []

        return [
            name[len(_FILE_PREFIX):-len(_FILE_SUFFIX)]
            for name in names
            if name.startswith(_FILE_PREFIX)
            and name.endswith(_FILE_SUFFIX)
            and len(name) > len(_FILE_PREFIX) + len(_FILE_SUFFIX)
        ]

    def import_session(self, path: Path) -> Session:
        """任意のパスのスナップショットを読み込み、SessionStore に登録する。

        id フィールドが存在しない場合は新しい ID を割り当てる。

        Args:
            path: スナップショットファイルのパス

        Returns:
            登録したセッション

        Raises:
            PersistenceError: 読み込み・解析に失敗した場合
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"セッションのインポートに失敗しました: {path}: {exc}") from exc

        if isinstance(data, dict) and "id" not in data:
            data["id"] = new_session_id()
            logger.warning(
                "スナップショットに id がないため新しい ID を割り当てました: %s (%s)",
                data["id"], path,
            )

        try:
            session = Session.model_validate(data)
        except PydanticValidationError as exc:
            raise PersistenceError(f"セッションのインポートに失敗しました: {path}: {exc}") from exc

        return self._store.register(session)
