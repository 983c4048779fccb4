"""
유닛 단위 전송 루프
소스 커서를 스트리밍으로 읽어 타겟 COPY 채널에 순서대로 기록 후 커밋
전송 오류는 해당 유닛 트랜잭션만 롤백하고 실패 결과로 반환
"""

import logging
import random
import threading
import time

from mysql2pg.exceptions import QueryExecutionError, TransferCancelled, TransferError
from mysql2pg.logger import LOGGER_NAME
from mysql2pg.models import MigrationResult, MigrationUnit, UnitState
from mysql2pg.reporting import LoggingReporter, Reporter, unit_completed, unit_failed, unit_started

logger = logging.getLogger(LOGGER_NAME)


class _UnitProgress:
    """시도 1회의 진행 상태"""

    def __init__(self):
        self.state = UnitState.DISPATCHED
        self.rows = 0


def _check_interrupt(cancel_event: threading.Event | None, deadline: float | None):
    if cancel_event is not None and cancel_event.is_set():
        raise TransferCancelled("취소 요청으로 중단")
    if deadline is not None and time.perf_counter() > deadline:
        raise TransferCancelled("유닛 제한 시간 초과")


def _transfer_once(
    unit: MigrationUnit,
    source,
    destination,
    progress: _UnitProgress,
    cancel_event: threading.Event | None,
    deadline: float | None,
):
    # 시작 전 취소된 유닛은 쿼리를 실행하지 않음
    _check_interrupt(cancel_event, deadline)
    reader = source.execute(unit.source_query)
    progress.state = UnitState.QUERY_EXECUTED
    try:
        columns = reader.columns
        with destination.transaction() as txn:
            sink = txn.prepare_bulk_load(unit.destination_table, columns)
            progress.state = UnitState.STREAMING
            try:
                for row in reader:
                    _check_interrupt(cancel_event, deadline)
                    sink.write(row)
                    progress.rows += 1
                progress.state = UnitState.FINALIZING
                sink.finalize()
            finally:
                sink.close()
            _check_interrupt(cancel_event, deadline)
            txn.commit()
        progress.state = UnitState.COMMITTED
    finally:
        reader.close()


def transfer(
    unit: MigrationUnit,
    source,
    destination,
    reporter: Reporter | None = None,
    retries: int = 0,
    retry_backoff: float = 1.0,
    timeout: float | None = None,
    cancel_event: threading.Event | None = None,
) -> MigrationResult:
    """유닛 1개 전송

    - 쿼리 실행 실패: 0행으로 즉시 반환 (다른 유닛에 영향 없음)
    - 전송 실패: 롤백 후 error 결과 반환, transient 오류는 retries 만큼 재시도
    """
    reporter = reporter or LoggingReporter()
    start = time.perf_counter()
    deadline = start + timeout if timeout else None
    attempt = 0

    while True:
        attempt += 1
        reporter.emit(unit_started(unit, attempt))
        progress = _UnitProgress()

        try:
            _transfer_once(unit, source, destination, progress, cancel_event, deadline)
        except QueryExecutionError as e:
            result = MigrationResult(
                index=unit.index,
                destination_table=unit.destination_table,
                status="query_error",
                elapsed=time.perf_counter() - start,
                state=UnitState.DISPATCHED,
                attempts=attempt,
                error=str(e),
            )
            reporter.emit(unit_failed(result))
            return result
        except TransferError as e:
            cancelled = isinstance(e, TransferCancelled)
            if e.transient and not cancelled and attempt <= retries:
                # 지수 백오프 + 랜덤 지터
                wait_sec = retry_backoff * (2 ** (attempt - 1)) * random.uniform(0.5, 1.5)
                logger.warning(
                    f"unit[{unit.index}] {unit.destination_table}: {e} "
                    f"(재시도 {attempt}/{retries}, {wait_sec:.1f}s 후)"
                )
                time.sleep(wait_sec)
                continue

            logger.debug(f"unit[{unit.index}] 실패 시점: {progress.state.value}, 읽은 행: {progress.rows}")
            result = MigrationResult(
                index=unit.index,
                destination_table=unit.destination_table,
                status="cancelled" if cancelled else "error",
                elapsed=time.perf_counter() - start,
                state=UnitState.FAILED,
                attempts=attempt,
                error=str(e),
            )
            reporter.emit(unit_failed(result))
            return result

        result = MigrationResult(
            index=unit.index,
            destination_table=unit.destination_table,
            status="success",
            rows_transferred=progress.rows,
            elapsed=time.perf_counter() - start,
            state=progress.state,
            attempts=attempt,
        )
        reporter.emit(unit_completed(result))
        return result
