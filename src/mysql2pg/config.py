"""
마이그레이션 설정 모듈
YAML 파일에서 소스(MySQL)/타겟(PostgreSQL) 연결 정보와 테이블별 쿼리 목록을 로드
YAML에 없는 연결 값은 환경변수(.env 포함)에서 채움
"""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mysql2pg.exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = Path.home() / ".mysql2pg.yaml"


def _split_host_port(data: Any) -> Any:
    """"host:port" 형식이면 host/port로 분리"""
    if isinstance(data, dict):
        host = data.get("host")
        if isinstance(host, str) and host.count(":") == 1:
            name, port = host.split(":")
            if port.isdigit():
                data = {**data, "host": name, "port": int(port)}
    return data


class SourceDBSettings(BaseSettings):
    """소스 DB 연결 설정 (MySQL)"""

    model_config = SettingsConfigDict(
        env_prefix="MYSQL2PG_SRC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost")
    port: int = Field(default=3306)
    username: str = Field(default="root")
    password: str = Field(default="")
    database: str = Field(default="")
    charset: str = Field(default="utf8mb4")
    # 동시에 열 수 있는 최대 커넥션 수 (초과 유닛은 반환될 때까지 대기)
    max_connections: int = Field(default=30, ge=1)

    @model_validator(mode="before")
    @classmethod
    def split_host(cls, data: Any) -> Any:
        return _split_host_port(data)

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "port": self.port,
            "user": self.username,
            "password": self.password,
            "database": self.database,
            "charset": self.charset,
        }


class TargetDBSettings(BaseSettings):
    """타겟 DB 연결 설정 (PostgreSQL)"""

    model_config = SettingsConfigDict(
        env_prefix="MYSQL2PG_DEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost")
    port: int = Field(default=5432)
    username: str = Field(default="postgres")
    password: str = Field(default="")
    database: str = Field(default="postgres")
    sslmode: str = Field(default="disable")

    @model_validator(mode="before")
    @classmethod
    def split_host(cls, data: Any) -> Any:
        return _split_host_port(data)

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "port": self.port,
            "user": self.username,
            "password": self.password,
            "dbname": self.database,
            "sslmode": self.sslmode,
        }


class MigrationConfig(BaseModel):
    """YAML 마이그레이션 설정"""
    src: SourceDBSettings = Field(default_factory=SourceDBSettings)
    dest: TargetDBSettings = Field(default_factory=TargetDBSettings)
    tables: dict[str, list[str]]
    # 동시 유닛 처리 수 (None이면 유닛 수만큼)
    max_workers: int | None = Field(default=None, ge=1)
    batch_size: int = Field(default=10000, ge=1)  # COPY 1회당 행 수
    # 바이너리 컬럼 값: auto(UTF-8이면 텍스트, 아니면 bytea hex) / hex(항상 bytea hex)
    binary_mode: Literal["auto", "hex"] = "auto"
    retries: int = Field(default=0, ge=0)
    retry_backoff: float = Field(default=1.0, ge=0)
    unit_timeout: float | None = Field(default=None, gt=0)
    log_dir: str | None = None

    @field_validator("tables", mode="before")
    @classmethod
    def normalize_tables(cls, value: Any) -> Any:
        """단일 쿼리 문자열은 리스트로 변환"""
        if not isinstance(value, dict):
            return value
        return {
            table: [queries] if isinstance(queries, str) else (queries or [])
            for table, queries in value.items()
        }

    @field_validator("tables")
    @classmethod
    def check_tables(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        for table, queries in value.items():
            if not table.strip():
                raise ValueError("테이블명이 비어 있습니다")
            if any(not q.strip() for q in queries):
                raise ValueError(f"{table}: 빈 쿼리가 있습니다")
        return value

    @property
    def unit_count(self) -> int:
        return sum(len(queries) for queries in self.tables.values())

    @property
    def worker_count(self) -> int:
        """실제 동시 실행 워커 수 (최소 1)"""
        units = self.unit_count
        if self.max_workers is None:
            return max(units, 1)
        return max(min(self.max_workers, units), 1)


def load_yaml_config(yaml_path: str | Path | None = None) -> MigrationConfig:
    """YAML 설정 파일 로드

    경로를 지정하지 않으면 ~/.mysql2pg.yaml 사용
    """
    path = Path(yaml_path) if yaml_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        raise ConfigurationError(f"설정 파일을 찾을 수 없습니다: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"YAML 파싱 실패 ({path}): {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"설정 파일 최상위는 매핑이어야 합니다: {path}")
    if "tables" not in data:
        raise ConfigurationError(f"tables 항목이 없습니다: {path}")

    try:
        # 연결 설정은 BaseSettings로 직접 생성해야 환경변수 fallback이 적용됨
        src = SourceDBSettings(**(data.get("src") or {}))
        dest = TargetDBSettings(**(data.get("dest") or {}))
        return MigrationConfig(
            **{k: v for k, v in data.items() if k not in ("src", "dest")},
            src=src,
            dest=dest,
        )
    except ValidationError as e:
        raise ConfigurationError(f"설정 값 검증 실패 ({path}):\n{e}") from e
