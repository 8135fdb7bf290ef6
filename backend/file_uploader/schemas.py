from pydantic import BaseModel
from typing import List, Optional


class ToastOut(BaseModel):
    message: str
    severity: str
    position: str
    auto_close: int
    hide_progress_bar: bool
    close_on_click: bool
    pause_on_hover: bool
    draggable: bool
    theme: str


class UploadState(BaseModel):
    status: str
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    progress: int = 0
    download_url: Optional[str] = None
    message: Optional[str] = None
    clipboard: Optional[str] = None
    toasts: List[ToastOut] = []


class HealthOut(BaseModel):
    status: str
    service: str
    github_configured: bool
