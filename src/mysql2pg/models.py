"""마이그레이션 유닛 / 결과 모델"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal


class UnitState(str, Enum):
    """유닛 진행 상태"""
    DISPATCHED = "dispatched"
    QUERY_EXECUTED = "query_executed"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass(frozen=True)
class MigrationUnit:
    """소스 쿼리 1개 → 타겟 테이블 1개"""
    index: int
    destination_table: str
    source_query: str


@dataclass
class MigrationResult:
    """유닛별 마이그레이션 결과"""
    index: int
    destination_table: str
    status: Literal["success", "query_error", "error", "cancelled"]
    rows_transferred: int = 0
    elapsed: float = 0.0
    state: UnitState = UnitState.DISPATCHED
    attempts: int = 1
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


@dataclass
class MigrationSummary:
    """전체 실행 요약"""
    results: list[MigrationResult] = field(default_factory=list)
    total_elapsed: float = 0.0

    @property
    def total_units(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return len([r for r in self.results if r.ok])

    @property
    def failed_results(self) -> list[MigrationResult]:
        return [r for r in self.results if not r.ok]

    @property
    def error_count(self) -> int:
        return len(self.failed_results)

    @property
    def total_rows(self) -> int:
        return sum(r.rows_transferred for r in self.results)


def expand_units(tables: dict[str, list[str]]) -> list[MigrationUnit]:
    """테이블 → 쿼리 목록 매핑을 순번이 매겨진 유닛 목록으로 펼침"""
    units = []
    for table, queries in tables.items():
        for query in queries:
            units.append(MigrationUnit(index=len(units), destination_table=table, source_query=query))
    return units
