"""
会话管理：签名 Cookie + 内存中的上传控制器注册表
"""
import logging
import os
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from fastapi import Request
from itsdangerous import BadData, URLSafeSerializer

from .lifecycle import InvalidTransition, UploadController, Uploading
from .notifications import BrowserClipboard, ToastQueue

logger = logging.getLogger(__name__)

SESSION_COOKIE = "uploader_session"
# 无访问超过该秒数的会话会被回收（上传中的除外）
SESSION_IDLE_TIMEOUT = float(os.getenv("SESSION_IDLE_TIMEOUT", "1800"))

# Session 密钥（生产环境必须修改）
DEFAULT_SECRET = "CHANGE_ME_TO_A_RANDOM_SECRET_IN_PRODUCTION"


def _serializer() -> URLSafeSerializer:
    # .env 在应用启动时才加载，所以每次读取
    return URLSafeSerializer(os.getenv("SECRET_KEY", DEFAULT_SECRET), salt="file-uploader")


def create_session_token(session_id: str) -> str:
    """创建 session token"""
    return _serializer().dumps({"sid": session_id})


def read_session_token(token: str) -> Optional[str]:
    """读取并验证 session token，无效时返回 None"""
    try:
        data = _serializer().loads(token)
    except BadData:
        return None
    if not isinstance(data, dict):
        return None
    sid = data.get("sid")
    return sid if isinstance(sid, str) and sid else None


@dataclass
class UploaderSession:
    session_id: str
    toasts: ToastQueue = field(default_factory=ToastQueue)
    clipboard: BrowserClipboard = field(default_factory=BrowserClipboard)
    last_seen: float = 0.0
    controller: UploadController = field(init=False)

    def __post_init__(self):
        self.controller = UploadController(notifier=self.toasts, clipboard=self.clipboard)

    def is_idle_since(self, cutoff: float) -> bool:
        # 上传中的会话不回收
        return self.last_seen < cutoff and not isinstance(self.controller.status, Uploading)


class SessionRegistry:
    """每个浏览器会话对应一个控制器，长时间无访问的会话会被回收"""

    def __init__(self, idle_timeout: float = SESSION_IDLE_TIMEOUT, clock: Callable[[], float] = time.monotonic):
        self._lock = threading.Lock()
        self._sessions: Dict[str, UploaderSession] = {}
        self._idle_timeout = idle_timeout
        self._clock = clock

    def get_or_create(self, session_id: Optional[str] = None) -> UploaderSession:
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            session = self._sessions.get(session_id) if session_id else None
            if session is None:
                session = UploaderSession(session_id=session_id or uuid.uuid4().hex)
                self._sessions[session.session_id] = session
                logger.info(f"Created uploader session {session.session_id[:8]}")
            session.last_seen = now
            return session

    def _evict_idle(self, now: float) -> None:
        cutoff = now - self._idle_timeout
        expired = []
        for session in list(self._sessions.values()):
            if not session.is_idle_since(cutoff):
                continue
            try:
                session.controller.clear()
            except InvalidTransition:
                continue
            del self._sessions[session.session_id]
            expired.append(session)
        if expired:
            logger.info(f"Evicted {len(expired)} idle uploader session(s)")

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


registry = SessionRegistry()


def session_id_from_request(request: Request) -> Optional[str]:
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        return None
    return read_session_token(token)
