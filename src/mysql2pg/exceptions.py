"""
마이그레이션 예외 정의
- ConfigurationError / ConnectivityError: 실행 전체를 중단
- QueryExecutionError / TransferError: 해당 유닛만 실패 처리
"""


class MigrationError(Exception):
    """마이그레이션 예외 기본 클래스"""


class ConfigurationError(MigrationError):
    """설정 파일 누락 또는 형식 오류"""


class ConnectivityError(MigrationError):
    """소스/타겟 DB 연결 실패"""

    def __init__(self, store: str, message: str):
        super().__init__(f"[{store}] {message}")
        self.store = store


class QueryExecutionError(MigrationError):
    """소스 쿼리 실행 실패 (잘못된 SQL 등)"""

    def __init__(self, query: str, message: str):
        super().__init__(message)
        self.query = query


class TransferError(MigrationError):
    """행 조회/COPY/커밋 단계 실패

    transient=True 이면 연결 단절 등 일시적 오류로 재시도 대상
    """

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class TransferCancelled(TransferError):
    """취소 요청 또는 유닛 제한 시간 초과로 중단됨"""
