"""로깅 설정

유닛은 워커 스레드(mysql2pg_N)에서 실행되므로 스레드명을 함께 기록
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

LOGGER_NAME = "mysql2pg"


def setup_logger(verbose: bool = False, log_dir: str | None = None) -> logging.Logger:
    """애플리케이션 로거 설정

    log_dir를 지정하면 날짜별 로그 파일도 함께 기록
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # 이미 핸들러가 설정되어 있으면 반환
    if logger.handlers:
        return logger

    # 콘솔 핸들러
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_format = logging.Formatter(
        "%(asctime)s - %(levelname)s - [%(threadName)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    # 파일 핸들러
    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(
            log_path / f"mysql2pg_{datetime.now().strftime('%Y%m%d')}.log",
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(console_format)
        logger.addHandler(file_handler)

    return logger
