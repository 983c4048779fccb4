"""
마이그레이션 엔진
설정을 유닛 목록으로 펼친 뒤 스레드 풀로 병렬 전송하고 결과를 집계
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed

from mysql2pg.config import MigrationConfig
from mysql2pg.logger import LOGGER_NAME
from mysql2pg.models import MigrationResult, MigrationSummary, MigrationUnit, UnitState, expand_units
from mysql2pg.reporting import LoggingReporter, Reporter, run_completed, run_started
from mysql2pg.transfer import transfer

logger = logging.getLogger(LOGGER_NAME)


class MigrationEngine:
    """MySQL → PostgreSQL 병렬 마이그레이션 엔진

    source / destination 은 스레드 간 공유되며, 유닛마다 커넥션을 따로 획득함
    """

    def __init__(self, source, destination, reporter: Reporter | None = None):
        self.source = source
        self.destination = destination
        self.reporter = reporter or LoggingReporter()
        self._cancel_event = threading.Event()

    def cancel(self):
        """진행 중인 유닛은 다음 행에서 중단, 대기 중인 유닛은 취소"""
        self._cancel_event.set()

    def check_connectivity(self):
        """소스/타겟 연결 확인 (실패 시 ConnectivityError 전파)"""
        logger.info("MySQL 연결 확인")
        self.source.ping()
        logger.info("PostgreSQL 연결 확인")
        self.destination.ping()

    def _worker_count(self, config: MigrationConfig, unit_count: int) -> int:
        workers = min(config.max_workers or unit_count, unit_count)
        # 유닛마다 소스/타겟 커넥션을 1개씩 점유
        for name, store in (("소스", self.source), ("타겟", self.destination)):
            capacity = getattr(store, "max_connections", None)
            if capacity is not None and workers > capacity:
                logger.warning(f"동시 워커 수를 {name} 최대 커넥션 수에 맞춤: {workers} → {capacity}")
                workers = capacity
        return max(workers, 1)

    def _run_unit(self, unit: MigrationUnit, config: MigrationConfig) -> MigrationResult:
        return transfer(
            unit,
            self.source,
            self.destination,
            reporter=self.reporter,
            retries=config.retries,
            retry_backoff=config.retry_backoff,
            timeout=config.unit_timeout,
            cancel_event=self._cancel_event,
        )

    def run(self, config: MigrationConfig) -> MigrationSummary:
        """전체 마이그레이션 실행

        연결 실패만 ConnectivityError로 즉시 중단하고, 유닛 실패는 결과에 기록
        """
        start = time.perf_counter()
        self._cancel_event.clear()

        units = expand_units(config.tables)
        workers = self._worker_count(config, len(units)) if units else 0
        self.reporter.emit(run_started(len(units), workers))
        self.check_connectivity()

        if not units:
            logger.warning("마이그레이션할 쿼리가 없습니다.")
            summary = MigrationSummary(total_elapsed=time.perf_counter() - start)
            self.reporter.emit(run_completed(summary))
            return summary

        results: list[MigrationResult] = []
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mysql2pg")
        try:
            futures = {executor.submit(self._run_unit, unit, config): unit for unit in units}
            for future in as_completed(futures):
                unit = futures[future]
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.exception(f"unit[{unit.index}] 예외 발생")
                    results.append(MigrationResult(
                        index=unit.index,
                        destination_table=unit.destination_table,
                        status="error",
                        state=UnitState.FAILED,
                        error=f"알 수 없는 오류: {e}",
                    ))
        except KeyboardInterrupt:
            logger.warning("중단 요청 - 진행 중인 유닛을 롤백합니다.")
            self.cancel()
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        finally:
            executor.shutdown(wait=True)

        results.sort(key=lambda r: r.index)
        summary = MigrationSummary(results=results, total_elapsed=time.perf_counter() - start)
        self.reporter.emit(run_completed(summary))
        return summary
