"""
FastAPI 主应用：页面、上传路由、中间件
"""
import logging
from pathlib import Path
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from dotenv import load_dotenv

from .github_storage import github_enabled
from .schemas import HealthOut
from .upload_views import router as upload_router

# 配置日志
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parents[2]  # 项目根目录
ENV_PATH = BASE_DIR / "backend" / ".env"
if ENV_PATH.exists():
    load_dotenv(dotenv_path=str(ENV_PATH))
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

if not github_enabled():
    logger.warning("GITHUB_TOKEN / GITHUB_USERNAME / GITHUB_REPO not fully set, uploads will fail")

# 创建 FastAPI 应用
app = FastAPI(
    title="File Uploader",
    description="Upload a file to a GitHub repository and get a download link",
    version="1.0.0"
)

# CORS 中间件（生产环境建议限制域名）
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(upload_router)


@app.get("/", response_class=HTMLResponse)
def index(request: Request):
    """上传页面"""
    return templates.TemplateResponse(request, "index.html", {"title": "Uploader"})


@app.get("/health", response_model=HealthOut)
def health_check():
    """健康检查端点"""
    return HealthOut(status="ok", service="File Uploader", github_configured=github_enabled())


@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    """404 错误处理"""
    return JSONResponse(
        status_code=404,
        content={"detail": "Not found"}
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception):
    """500 错误处理"""
    logger.error(f"Internal server error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )
