#!/usr/bin/env python3
"""
MySQL → PostgreSQL 데이터 마이그레이션 CLI
- YAML 설정 파일의 테이블별 쿼리 결과를 COPY로 병렬 적재
"""

import sys

import click
from rich.console import Console
from rich.markup import escape

from mysql2pg.config import DEFAULT_CONFIG_PATH, load_yaml_config
from mysql2pg.engine import MigrationEngine
from mysql2pg.exceptions import ConfigurationError, ConnectivityError
from mysql2pg.logger import setup_logger
from mysql2pg.reporting import LoggingReporter, print_summary
from mysql2pg.sink import DestinationStore
from mysql2pg.source import SourceStore

console = Console()


@click.command()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help=f"설정 파일 경로 (기본: {DEFAULT_CONFIG_PATH})",
)
@click.option("-v", "--verbose", is_flag=True, help="DEBUG 로그 출력")
def main(config_file, verbose):
    """MySQL 쿼리 결과를 PostgreSQL 테이블로 마이그레이션

    예시:
      mysql2pg --config migration.yaml
    """
    try:
        config = load_yaml_config(config_file)
    except ConfigurationError as e:
        console.print(f"[red]설정 오류: {escape(str(e))}[/red]")
        sys.exit(1)

    logger = setup_logger(verbose=verbose, log_dir=config.log_dir)
    logger.info(f"설정 파일: {config_file or DEFAULT_CONFIG_PATH}")

    source = SourceStore(config.src)
    destination = DestinationStore(
        config.dest,
        max_connections=config.worker_count,
        batch_size=config.batch_size,
        binary_mode=config.binary_mode,
    )
    engine = MigrationEngine(source, destination, reporter=LoggingReporter(logger))

    try:
        summary = engine.run(config)
    except ConnectivityError as e:
        console.print(f"[red]연결 실패: {escape(str(e))}[/red]")
        sys.exit(1)
    finally:
        destination.close()

    print_summary(summary)

    if summary.error_count:
        sys.exit(1)


if __name__ == "__main__":
    main()
