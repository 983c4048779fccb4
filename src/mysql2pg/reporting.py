"""
실행 이벤트 리포팅
엔진은 MigrationEvent만 발행하고, 출력 방식은 Reporter 구현이 결정
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mysql2pg.logger import LOGGER_NAME
from mysql2pg.models import MigrationResult, MigrationSummary, MigrationUnit

console = Console()


@dataclass
class MigrationEvent:
    """구조화된 실행 이벤트"""
    level: int
    message: str
    fields: dict[str, Any] = field(default_factory=dict)


class Reporter(Protocol):
    def emit(self, event: MigrationEvent) -> None:
        ...


class LoggingReporter:
    """이벤트를 logging 로거로 출력"""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(LOGGER_NAME)

    def emit(self, event: MigrationEvent) -> None:
        if event.fields:
            detail = " ".join(f"{k}={v}" for k, v in event.fields.items())
            self.logger.log(event.level, f"{event.message} {detail}", extra={"fields": event.fields})
        else:
            self.logger.log(event.level, event.message, extra={"fields": event.fields})


def run_started(unit_count: int, workers: int) -> MigrationEvent:
    return MigrationEvent(logging.INFO, "마이그레이션 시작", {"units": unit_count, "workers": workers})


def unit_started(unit: MigrationUnit, attempt: int = 1) -> MigrationEvent:
    fields = {"index": unit.index, "table": unit.destination_table}
    if attempt > 1:
        fields["attempt"] = attempt
    return MigrationEvent(logging.INFO, f"unit[{unit.index}] 시작", fields)


def unit_completed(result: MigrationResult) -> MigrationEvent:
    return MigrationEvent(
        logging.INFO,
        f"unit[{result.index}] 완료",
        {
            "index": result.index,
            "table": result.destination_table,
            "rows": result.rows_transferred,
            "elapsed": f"{result.elapsed:.3f}s",
        },
    )


def unit_failed(result: MigrationResult) -> MigrationEvent:
    return MigrationEvent(
        logging.ERROR,
        f"unit[{result.index}] 실패",
        {
            "index": result.index,
            "table": result.destination_table,
            "status": result.status,
            "state": result.state.value,
            "error": result.error,
        },
    )


def run_completed(summary: MigrationSummary) -> MigrationEvent:
    level = logging.INFO if summary.error_count == 0 else logging.WARNING
    return MigrationEvent(
        level,
        "마이그레이션 완료",
        {
            "units": summary.total_units,
            "failed": summary.error_count,
            "rows": summary.total_rows,
            "elapsed": f"{summary.total_elapsed:.3f}s",
        },
    )


def print_summary(summary: MigrationSummary):
    """마이그레이션 요약 출력"""
    console.print("\n" + "=" * 60)
    console.print("[bold]마이그레이션 결과[/bold]")
    console.print("=" * 60)

    if summary.results:
        table = Table(show_header=True, header_style="bold")
        table.add_column("#", justify="right")
        table.add_column("테이블")
        table.add_column("상태")
        table.add_column("행 수", justify="right")
        table.add_column("소요 시간", justify="right")

        for r in summary.results:
            if r.ok:
                status = "[green]OK[/green]"
            elif r.status == "query_error":
                status = "[yellow]QUERY[/yellow]"
            else:
                status = f"[red]{r.status.upper()}[/red]"
            table.add_row(str(r.index), escape(r.destination_table), status, f"{r.rows_transferred:,}", f"{r.elapsed:.2f}s")
        console.print(table)

    console.print(f"성공: [green]{summary.success_count}[/green] / {summary.total_units}")
    console.print(f"총 row: {summary.total_rows:,}")
    console.print(f"총 소요 시간: {summary.total_elapsed:.2f}s")

    errors = summary.failed_results
    if errors:
        console.print("\n[red]실패 목록:[/red]")
        for r in errors:
            console.print(f"  - [{r.index}] {escape(r.destination_table)}: {escape(str(r.error))}")
