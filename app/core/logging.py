# app/core/logging.py
import inspect
import logging
import sys

from loguru import logger

from app.core.config import settings

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level}</level> | "
    "<cyan>{extra[request_id]}</cyan> | {message}"
)


class InterceptHandler(logging.Handler):
    """把標準 logging（uvicorn / sqlalchemy / apscheduler）導入 loguru。"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging():
    logger.remove()
    # request_id 預設值，避免非請求情境下 format 取不到 extra
    logger.configure(extra={"request_id": "-"})
    logger.add(sys.stdout, level=settings.LOG_LEVEL,
               backtrace=True, diagnose=False,
               serialize=settings.LOG_JSON,
               format=_FORMAT)
    if settings.LOG_FILE:
        logger.add(settings.LOG_FILE, level=settings.LOG_LEVEL,
                   rotation="10 MB", retention="14 days",
                   serialize=True, enqueue=True)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "apscheduler"):
        std = logging.getLogger(name)
        std.handlers = [InterceptHandler()]
        std.propagate = False
    return logger
