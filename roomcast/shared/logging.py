import os
import socket
import sys

from loguru import logger


def get_worker_info() -> tuple[str, str]:
    worker_name = os.environ.get("WORKER_NAME") or f"{socket.gethostname()}:{os.getpid()}"
    commit_id = (os.environ.get("BUILD_COMMIT") or "dev")[:8]
    return worker_name, commit_id


def init_logger(debug: bool = False):
    logger.remove()

    worker_name, commit_id = get_worker_info()

    if debug:
        logger_level = "DEBUG"
        logger_format = (
            f"<yellow>{worker_name}:{commit_id}</yellow> | "
            "<green>{time:MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )
    else:
        logger_level = "INFO"
        logger_format = (
            f"{worker_name}:{commit_id} | "
            "{time:MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{name}:{function}:{line} | "
            "{message}"
        )
    logger.add(sys.stderr, level=logger_level, format=logger_format)
