"""
SessionStore — 記録セッションのインメモリレジストリ

記録セッションの生成・アクション追加・終了・取得・削除を管理する。
セッションごとのアクション追加はロックで直列化され、
同時に追加されたアクションも欠落・重複なく追加順に並ぶ。

未知のセッション ID に対する操作は例外を送出せず None を返す。
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Callable, Optional

from .models import Action, CodegenOptions, Session, now_ms

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    """UUID4 形式のセッション ID を生成する。"""
    return str(uuid.uuid4())


class SessionStore:
    """記録セッションのレジストリ。

    セッションは open() で生成され、append() でのみ変更され、
    close() で終了時刻が記録される。終了してもレジストリからは削除されず、
    remove() を呼んだ時点で削除される。

    使用例::

        store = SessionStore()
        session = store.open(CodegenOptions())
        store.append(session.id, "navigate", {"url": "https://example.com"})
        store.close(session.id)
    """

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        """空のレジストリを初期化する。

        Args:
            clock: 現在時刻（エポックミリ秒）を返す関数
        """
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def open(self, options: Optional[CodegenOptions] = None) -> Session:
        """新しいセッションを生成して登録する。

        Args:
            options: テスト生成設定。None でデフォルト値

        Returns:
            生成したセッション
        """
        with self._lock:
            session_id = new_session_id()
            while session_id in self._sessions:
                session_id = new_session_id()

            session = Session(
                id=session_id,
                start_time=self._clock(),
                options=options or CodegenOptions(),
            )
            self._sessions[session_id] = session

        logger.info("セッションを開始しました: %s", session_id)
        return session

    def register(self, session: Session) -> Session:
        """外部から読み込んだセッションを登録する。同一 ID は置き換える。

        Args:
            session: 登録するセッション

        Returns:
            登録したセッション
        """
        with self._lock:
            replaced = session.id in self._sessions
            self._sessions[session.id] = session

        if replaced:
            logger.info("セッションを置き換えました: %s", session.id)
        else:
            logger.info("セッションを登録しました: %s", session.id)
        return session

    def append(
        self,
        session_id: str,
        tool_name: str,
        parameters: Optional[dict[str, Any]] = None,
        result: Any = None,
    ) -> Optional[Action]:
        """アクションを記録してセッションに追加する。

        終了済みのセッションへの追加も受け付ける（警告ログのみ）。

        Args:
            session_id: 追加先のセッション ID
            tool_name: 実行されたツール名
            parameters: ツールに渡されたパラメータ
            result: ツールの実行結果（任意）

        Returns:
            追加したアクション。セッションが存在しない場合は None

        Raises:
            ValidationError: パラメータが JSON で表現できない場合（何も追加しない）
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                logger.debug("未知のセッションへの追加を無視しました: %s", session_id)
                return None

            action = Action.create(
                tool_name, parameters, result=result, timestamp=self._clock(),
            )
            session.actions.append(action)
            count = len(session.actions)
            ended = session.is_ended

        if ended:
            logger.warning("終了済みのセッションにアクションを追加しました: %s", session_id)
        logger.debug("アクションを記録しました: %s #%d (%s)", tool_name, count, session_id)
        return action

    def close(self, session_id: str) -> Optional[Session]:
        """セッションの終了時刻を記録する。

        既に終了済みの場合は最初の終了時刻を維持する。

        Args:
            session_id: 終了するセッション ID

        Returns:
            終了したセッション。存在しない場合は None
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.end_time is not None:
                return session
            session.end_time = self._clock()

        logger.info(
            "セッションを終了しました: %s (%d actions)",
            session_id, len(session.actions),
        )
        return session

    def fetch(self, session_id: str) -> Optional[Session]:
        """セッションを返す。存在しない場合は None。"""
        with self._lock:
            return self._sessions.get(session_id)

    def snapshot(self, session_id: str) -> Optional[Session]:
        """セッションの複製を返す。複製は以降の追加の影響を受けない。"""
        with self._lock:
            session = self._sessions.get(session_id)
            return session.model_copy(deep=True) if session is not None else None

    def list(self) -> list[Session]:
        """登録済みの全セッションを登録順で返す。"""
        with self._lock:
            return list(self._sessions.values())

    def remove(self, session_id: str) -> bool:
        """セッションをレジストリから削除する。

        Returns:
            削除した場合は True、存在しない場合は False
        """
        with self._lock:
            removed = self._sessions.pop(session_id, None) is not None

        if removed:
            logger.info("セッションを削除しました: %s", session_id)
        return removed
