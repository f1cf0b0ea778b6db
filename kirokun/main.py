from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
import logging
import sys
import os

from kirokun.core.config import settings
from kirokun.core.exceptions import AppError, GENERIC_MESSAGE_ERRORS
from kirokun.api.v1.api import api_router
from kirokun.scheduler.maintenance_scheduler import maintenance_scheduler

# ログ設定（標準出力に出力）
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)
logger.info("Application starting...")

app = FastAPI()


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """
    アプリケーションエラーを種別ごとのステータスコードで返す。
    整合性エラー・外部障害は内部状態を含まない汎用メッセージにする。
    """
    message = exc.default_message if isinstance(exc, GENERIC_MESSAGE_ERRORS) else exc.message
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": message, "kind": exc.kind},
    )


def _scheduler_enabled() -> bool:
    return not os.getenv("TESTING")


@app.on_event("startup")
async def startup_event():
    """アプリケーション起動時の処理"""
    if not _scheduler_enabled():
        return
    logger.info("Starting maintenance scheduler...")
    maintenance_scheduler.start()
    logger.info("Maintenance scheduler started successfully")


@app.on_event("shutdown")
async def shutdown_event():
    """アプリケーション終了時の処理"""
    if not _scheduler_enabled():
        return
    logger.info("Shutting down maintenance scheduler...")
    maintenance_scheduler.shutdown()
    logger.info("Maintenance scheduler stopped successfully")

# 環境に応じてCORS設定を変更
is_production = os.getenv("ENVIRONMENT") == "production"

if is_production:
    allowed_origins = [
        origin.strip()
        for origin in os.getenv("ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    ]
else:
    # 開発環境
    allowed_origins = ["http://localhost:3000"]

# CORSミドルウェアの設定
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


@app.get("/")
async def read_root():
    return {"message": "Welcome to the Kirokun API!"}


app.include_router(api_router, prefix=settings.API_V1_STR)


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)
