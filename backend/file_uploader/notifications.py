"""
Toast 通知与剪贴板：按会话排队，由前端轮询取走
"""
import threading
from dataclasses import dataclass, asdict
from typing import List, Optional

SUCCESS = "success"
ERROR = "error"


@dataclass(frozen=True)
class Toast:
    message: str
    severity: str = SUCCESS
    position: str = "top-center"
    auto_close: int = 2000
    hide_progress_bar: bool = False
    close_on_click: bool = True
    pause_on_hover: bool = True
    draggable: bool = True
    theme: str = "dark"

    def to_dict(self) -> dict:
        return asdict(self)


class ToastQueue:
    """通知接收端：只管投递，不关心展示结果"""

    def __init__(self):
        self._lock = threading.Lock()
        self._items: List[Toast] = []

    def success(self, message: str, auto_close: int = 2000) -> None:
        self.push(Toast(message=message, severity=SUCCESS, auto_close=auto_close))

    def error(self, message: str, auto_close: int = 3000) -> None:
        self.push(Toast(message=message, severity=ERROR, auto_close=auto_close))

    def push(self, toast: Toast) -> None:
        with self._lock:
            self._items.append(toast)

    def drain(self) -> List[Toast]:
        with self._lock:
            items, self._items = self._items, []
        return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class BrowserClipboard:
    """浏览器剪贴板：服务端只保存文本，由前端 navigator.clipboard 写入"""

    def __init__(self):
        self._lock = threading.Lock()
        self._text: Optional[str] = None

    def copy(self, text: str) -> None:
        with self._lock:
            self._text = text

    def take(self) -> Optional[str]:
        with self._lock:
            text, self._text = self._text, None
        return text
