"""
上传生命周期控制器：选择文件 → 上传 → 完成/出错/取消
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Tuple, Union

from .github_storage import (
    SelectedFile,
    UploadCancelled,
    UploadFailed,
    UploadOutcome,
    UploadSucceeded,
    UploadTooLarge,
    upload_to_github,
)

logger = logging.getLogger(__name__)

SIZE_LIMIT_MESSAGE = "That’s a big file. Try again with a file smaller than 25MB."


# ===== 状态（带标签的变体，每种只携带自己需要的数据）=====
@dataclass(frozen=True)
class Idle:
    name = "idle"


@dataclass(frozen=True)
class Uploading:
    progress: int = 0
    name = "uploading"


@dataclass(frozen=True)
class Done:
    download_url: str
    name = "done"


@dataclass(frozen=True)
class Error:
    name = "error"


UploadStatus = Union[Idle, Uploading, Done, Error]


class InvalidTransition(Exception):
    """当前状态不允许该操作"""


class CancelToken:
    """一次上传尝试对应的取消令牌"""

    def __init__(self):
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()


class Notifier(Protocol):
    def success(self, message: str, auto_close: int = ...) -> None: ...

    def error(self, message: str, auto_close: int = ...) -> None: ...


class Clipboard(Protocol):
    def copy(self, text: str) -> None: ...


Uploader = Callable[..., UploadOutcome]


class UploadController:
    """
    持有选中的文件、上传状态、进度、结果和当前取消令牌。

    上传在后台线程执行，回调通过令牌身份判断是否已过期：
    取消之后旧令牌不再是当前令牌，迟到的进度和结果都会被丢弃。
    """

    def __init__(
        self,
        notifier: Notifier,
        clipboard: Clipboard,
        uploader: Uploader = upload_to_github,
    ):
        self._notifier = notifier
        self._clipboard = clipboard
        self._uploader = uploader
        self._lock = threading.RLock()
        self._file: Optional[SelectedFile] = None
        self._status: UploadStatus = Idle()
        self._token = CancelToken()

    # ----- 只读视图 -----
    @property
    def status(self) -> UploadStatus:
        with self._lock:
            return self._status

    @property
    def selected_file(self) -> Optional[SelectedFile]:
        with self._lock:
            return self._file

    @property
    def progress(self) -> int:
        with self._lock:
            if isinstance(self._status, Uploading):
                return self._status.progress
            return 0

    @property
    def download_url(self) -> Optional[str]:
        with self._lock:
            if isinstance(self._status, Done):
                return self._status.download_url
            return None

    def snapshot(self) -> Tuple[UploadStatus, Optional[SelectedFile], int]:
        """一次加锁读出状态、文件和进度，保证三者一致"""
        with self._lock:
            progress = self._status.progress if isinstance(self._status, Uploading) else 0
            return self._status, self._file, progress

    @property
    def token(self) -> CancelToken:
        with self._lock:
            return self._token

    # ----- 用户操作 -----
    def select(self, file: SelectedFile) -> None:
        with self._lock:
            if not isinstance(self._status, Idle):
                raise InvalidTransition(f"Cannot select a file while {self._status.name}")
            self._file = file
            logger.info(f"Selected {file.name} ({file.size} bytes)")

    def begin_upload(self) -> CancelToken:
        """Idle → Uploading，返回本次尝试的令牌"""
        with self._lock:
            if not isinstance(self._status, Idle):
                raise InvalidTransition(f"Cannot start an upload while {self._status.name}")
            if self._file is None:
                raise InvalidTransition("No file selected")
            self._status = Uploading(progress=0)
            return self._token

    def run_upload(self, token: CancelToken) -> None:
        """执行上传并应用结果；令牌过期则忽略结果"""
        with self._lock:
            if token is not self._token or not isinstance(self._status, Uploading):
                return
            file = self._file

        try:
            outcome = self._uploader(
                file,
                on_progress=lambda percent: self._on_progress(token, percent),
                is_cancelled=lambda: token.cancelled,
            )
        except Exception as e:
            logger.error(f"Unexpected upload error: {e}", exc_info=True)
            outcome = UploadFailed(str(e) or "Upload failed")
        self._apply(token, outcome)

    def start_upload(self) -> None:
        self.run_upload(self.begin_upload())

    def cancel(self) -> bool:
        """Uploading → Idle；不在上传中则什么都不做"""
        with self._lock:
            if not isinstance(self._status, Uploading):
                return False
            self._token.cancel()
            self._token = CancelToken()
            self._reset()
        logger.info("Upload cancelled")
        return True

    def copy_and_done(self) -> str:
        """Done → Idle：复制下载链接并提示"""
        with self._lock:
            if not isinstance(self._status, Done):
                raise InvalidTransition(f"Nothing to copy while {self._status.name}")
            url = self._status.download_url
            self._clipboard.copy(url)
            self._notifier.success("The download link was copied", auto_close=800)
            self._reset()
        return url

    def try_again(self) -> None:
        """Error → Idle"""
        with self._lock:
            if not isinstance(self._status, Error):
                raise InvalidTransition(f"Cannot retry while {self._status.name}")
            self._reset()

    def clear(self) -> None:
        """取消选择；上传进行中时不允许"""
        with self._lock:
            if isinstance(self._status, Uploading):
                raise InvalidTransition("Cannot clear while uploading, cancel first")
            self._reset()

    # ----- 内部 -----
    def _reset(self) -> None:
        self._file = None
        self._status = Idle()

    def _is_current(self, token: CancelToken) -> bool:
        return token is self._token and isinstance(self._status, Uploading)

    def _on_progress(self, token: CancelToken, percent: int) -> None:
        with self._lock:
            if not self._is_current(token):
                return
            percent = max(0, min(100, int(percent)))
            if percent > self._status.progress:
                self._status = Uploading(progress=percent)

    def _apply(self, token: CancelToken, outcome: UploadOutcome) -> None:
        with self._lock:
            if not self._is_current(token):
                logger.info(f"Ignoring stale upload result: {type(outcome).__name__}")
                return

            if isinstance(outcome, UploadSucceeded):
                self._status = Done(download_url=outcome.download_url)
                self._notifier.success("File uploaded successfully", auto_close=2000)
            elif isinstance(outcome, UploadTooLarge):
                self._status = Error()
            elif isinstance(outcome, UploadCancelled):
                self._reset()
            else:
                self._notifier.error(outcome.message, auto_close=3000)
                self._reset()
