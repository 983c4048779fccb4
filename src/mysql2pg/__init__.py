"""
MySQL → PostgreSQL 데이터 마이그레이션 도구
설정된 소스 쿼리 결과를 COPY 벌크 로드로 타겟 테이블에 병렬 적재
"""

from mysql2pg.engine import MigrationEngine
from mysql2pg.models import MigrationResult, MigrationSummary, MigrationUnit

__all__ = ["MigrationEngine", "MigrationResult", "MigrationSummary", "MigrationUnit"]
