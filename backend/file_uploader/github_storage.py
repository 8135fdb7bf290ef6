"""
GitHub Contents API 上传封装
"""
from __future__ import annotations

import base64
import json
import logging
import math
import mimetypes
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_MEDIA_TYPE = "application/octet-stream"
# GitHub 对超大内容返回 4xx，这几种视为文件过大
TOO_LARGE_STATUSES = {400, 413, 422}


@dataclass(frozen=True)
class GitHubConfig:
    token: str
    username: str
    repository: str
    branch: str = ""
    prefix: str = ""
    api_url: str = DEFAULT_API_URL
    connect_timeout: float = 10.0
    read_timeout: float = 120.0


def load_github_config() -> GitHubConfig:
    """从环境变量读取 GitHub 配置（缺失值不校验，由远端报错）"""
    timeout_raw = os.getenv("GITHUB_TIMEOUT", "").strip()
    try:
        read_timeout = float(timeout_raw) if timeout_raw else 120.0
    except ValueError as exc:
        raise ValueError("GITHUB_TIMEOUT must be a number") from exc

    return GitHubConfig(
        token=os.getenv("GITHUB_TOKEN", "").strip(),
        username=os.getenv("GITHUB_USERNAME", "").strip(),
        repository=os.getenv("GITHUB_REPO", "").strip(),
        branch=os.getenv("GITHUB_BRANCH", "").strip(),
        prefix=os.getenv("GITHUB_UPLOAD_PREFIX", "").strip().strip("/"),
        api_url=(os.getenv("GITHUB_API_URL", "").strip() or DEFAULT_API_URL).rstrip("/"),
        read_timeout=read_timeout,
    )


def github_enabled() -> bool:
    config = load_github_config()
    return bool(config.token) and bool(config.username) and bool(config.repository)


@dataclass(frozen=True)
class SelectedFile:
    """用户选择的文件"""

    name: str
    content: bytes
    content_type: str = ""

    @property
    def size(self) -> int:
        return len(self.content)


# ===== 上传结果 =====
@dataclass(frozen=True)
class UploadSucceeded:
    download_url: str


@dataclass(frozen=True)
class UploadTooLarge:
    message: str


@dataclass(frozen=True)
class UploadFailed:
    message: str


@dataclass(frozen=True)
class UploadCancelled:
    pass


UploadOutcome = Union[UploadSucceeded, UploadTooLarge, UploadFailed, UploadCancelled]


class UploadAborted(Exception):
    """请求体读取过程中检测到取消"""


def file_extension(filename: str) -> str:
    """取最后一个点之后的扩展名（含点），没有则返回空串"""
    return "".join(Path((filename or "").strip()).suffix.split())


def build_storage_name(filename: str) -> str:
    return f"{uuid.uuid4()}{file_extension(filename)}"


def resolve_media_type(file: SelectedFile) -> str:
    # 去掉 "; charset=..." 之类的参数
    declared = (file.content_type or "").split(";")[0].strip().lower()
    if declared:
        return declared
    guessed, _ = mimetypes.guess_type(file.name or "")
    return guessed or DEFAULT_MEDIA_TYPE


def build_upload_path(config: GitHubConfig, file: SelectedFile) -> str:
    """仓库内路径：[前缀/]媒体类型/随机文件名"""
    key = f"{resolve_media_type(file)}/{build_storage_name(file.name)}"
    if config.prefix:
        return f"{config.prefix}/{key}"
    return key


def build_commit_message(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return now.strftime("%Y/%m/%d - %H:%M")


def percent_of(loaded: int, total: int) -> int:
    if total <= 0:
        return 100
    return min(100, int(math.floor(loaded * 100 / total + 0.5)))


class ProgressBody:
    """
    可被 requests 流式发送的请求体。
    每读出一块就回调一次进度，并检查取消令牌。
    """

    def __init__(
        self,
        data: bytes,
        on_progress: Optional[Callable[[int], None]] = None,
        is_cancelled: Optional[Callable[[], bool]] = None,
    ):
        self._data = data
        self._offset = 0
        self._on_progress = on_progress
        self._is_cancelled = is_cancelled

    def __len__(self) -> int:
        return len(self._data)

    def read(self, size: int = -1) -> bytes:
        if self._is_cancelled and self._is_cancelled():
            raise UploadAborted("Upload cancelled")
        if size is None or size < 0:
            size = len(self._data) - self._offset
        chunk = self._data[self._offset:self._offset + size]
        self._offset += len(chunk)
        if chunk and self._on_progress:
            self._on_progress(percent_of(self._offset, len(self._data)))
        return chunk


def _error_message(resp: requests.Response) -> str:
    message = f"Request failed with status code {resp.status_code}"
    try:
        detail = resp.json().get("message")
    except (ValueError, AttributeError):
        detail = None
    if detail:
        message = f"{message}: {detail}"
    return message


def upload_to_github(
    file: SelectedFile,
    config: Optional[GitHubConfig] = None,
    on_progress: Optional[Callable[[int], None]] = None,
    is_cancelled: Optional[Callable[[], bool]] = None,
    now: Optional[datetime] = None,
) -> UploadOutcome:
    """把文件写入 GitHub 仓库，返回明确的结果类型（不抛出异常）"""
    config = config or load_github_config()
    path = build_upload_path(config, file)
    url = f"{config.api_url}/repos/{config.username}/{config.repository}/contents/{quote(path)}"

    payload = {
        "message": build_commit_message(now),
        "content": base64.b64encode(file.content).decode("utf-8"),
    }
    if config.branch:
        payload["branch"] = config.branch
    body = ProgressBody(
        json.dumps(payload).encode("utf-8"),
        on_progress=on_progress,
        is_cancelled=is_cancelled,
    )
    headers = {
        "Authorization": f"Bearer {config.token}",
        "Accept": "application/vnd.github+json",
        "Content-Type": "application/json",
    }

    logger.info(f"Uploading {file.name} ({file.size} bytes) to {path}")
    try:
        resp = requests.put(
            url,
            data=body,
            headers=headers,
            timeout=(config.connect_timeout, config.read_timeout),
        )
    except UploadAborted:
        logger.info(f"Upload of {file.name} aborted")
        return UploadCancelled()
    except requests.exceptions.RequestException as e:
        logger.warning(f"Upload of {file.name} failed: {e}")
        return UploadFailed(str(e) or "Network Error")

    if resp.status_code in TOO_LARGE_STATUSES:
        logger.info(f"GitHub rejected {file.name} as too large ({resp.status_code})")
        return UploadTooLarge(_error_message(resp))
    if not resp.ok:
        message = _error_message(resp)
        logger.warning(f"Upload of {file.name} failed: {message}")
        return UploadFailed(message)

    try:
        download_url = resp.json()["content"]["download_url"]
    except (ValueError, KeyError, TypeError):
        logger.error(f"Malformed GitHub response for {path}", exc_info=True)
        return UploadFailed("Malformed response from GitHub")
    if not download_url:
        return UploadFailed("GitHub response has no download URL")

    logger.info(f"Uploaded {file.name} -> {download_url}")
    return UploadSucceeded(download_url)
