"""
上传接口：选择文件、开始、取消、复制完成、重试
"""
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Request, Response, UploadFile

from .github_storage import SelectedFile
from .lifecycle import Done, Error, InvalidTransition, SIZE_LIMIT_MESSAGE
from .schemas import ToastOut, UploadState
from .sessions import (
    SESSION_COOKIE,
    UploaderSession,
    create_session_token,
    registry,
    session_id_from_request,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/upload")


def get_session(request: Request, response: Response) -> UploaderSession:
    """按 Cookie 取会话，没有则新建并写回 Cookie"""
    session_id = session_id_from_request(request)
    session = registry.get_or_create(session_id)
    if session.session_id != session_id:
        response.set_cookie(
            SESSION_COOKIE,
            create_session_token(session.session_id),
            httponly=True,
            samesite="lax",
            secure=False  # 生产环境 HTTPS 时设为 True
        )
    return session


def build_state(session: UploaderSession, clipboard: Optional[str] = None) -> UploadState:
    status, selected, progress = session.controller.snapshot()
    return UploadState(
        status=status.name,
        file_name=selected.name if selected else None,
        file_size=selected.size if selected else None,
        progress=progress,
        download_url=status.download_url if isinstance(status, Done) else None,
        message=SIZE_LIMIT_MESSAGE if isinstance(status, Error) else None,
        clipboard=clipboard,
        toasts=[ToastOut(**toast.to_dict()) for toast in session.toasts.drain()],
    )


def _conflict(exc: InvalidTransition) -> HTTPException:
    logger.info(f"Rejected transition: {exc}")
    return HTTPException(status_code=409, detail=str(exc))


@router.get("", response_model=UploadState)
def upload_state(session: UploaderSession = Depends(get_session)):
    """当前状态（前端轮询）"""
    return build_state(session)


@router.post("/file", response_model=UploadState)
async def select_file(
    file: UploadFile = File(...),
    session: UploaderSession = Depends(get_session),
):
    """选择文件：读入内存，等待上传"""
    if not file or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    content = await file.read()
    try:
        session.controller.select(SelectedFile(
            name=file.filename,
            content=content,
            content_type=file.content_type or "",
        ))
    except InvalidTransition as e:
        raise _conflict(e)
    return build_state(session)


@router.delete("/file", response_model=UploadState)
def clear_file(session: UploaderSession = Depends(get_session)):
    """取消选择"""
    try:
        session.controller.clear()
    except InvalidTransition as e:
        raise _conflict(e)
    return build_state(session)


@router.post("/start", response_model=UploadState)
def start_upload(
    background_tasks: BackgroundTasks,
    session: UploaderSession = Depends(get_session),
):
    """开始上传，实际请求在后台任务中执行"""
    try:
        token = session.controller.begin_upload()
    except InvalidTransition as e:
        raise _conflict(e)
    background_tasks.add_task(session.controller.run_upload, token)
    return build_state(session)


@router.post("/cancel", response_model=UploadState)
def cancel_upload(session: UploaderSession = Depends(get_session)):
    session.controller.cancel()
    return build_state(session)


@router.post("/done", response_model=UploadState)
def copy_and_done(session: UploaderSession = Depends(get_session)):
    """复制下载链接并重置"""
    try:
        session.controller.copy_and_done()
    except InvalidTransition as e:
        raise _conflict(e)
    return build_state(session, clipboard=session.clipboard.take())


@router.post("/retry", response_model=UploadState)
def try_again(session: UploaderSession = Depends(get_session)):
    try:
        session.controller.try_again()
    except InvalidTransition as e:
        raise _conflict(e)
    return build_state(session)
