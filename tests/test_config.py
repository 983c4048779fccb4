"""설정 로드 테스트"""

import pytest

from mysql2pg.config import MigrationConfig, load_yaml_config
from mysql2pg.exceptions import ConfigurationError


CONFIG_YAML = """
src:
  host: "10.0.0.5:3307"
  username: reader
  password: secret
  database: shop
dest:
  host: pg.internal
  username: loader
  password: secret
  database: warehouse
tables:
  users:
    - SELECT id, name FROM users
  orders:
    - SELECT * FROM orders WHERE id < 1000
    - SELECT * FROM orders WHERE id >= 1000
  events: SELECT * FROM events
max_workers: 2
batch_size: 500
"""


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """작업 디렉토리의 .env 및 MYSQL2PG_ 환경변수 영향 차단"""
    monkeypatch.chdir(tmp_path)
    for key in ("HOST", "PORT", "USERNAME", "PASSWORD", "DATABASE", "MAX_CONNECTIONS"):
        monkeypatch.delenv(f"MYSQL2PG_SRC_{key}", raising=False)
        monkeypatch.delenv(f"MYSQL2PG_DEST_{key}", raising=False)


def _write(tmp_path, text, name="migration.yaml"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadYamlConfig:

    def test_full_config(self, tmp_path):
        config = load_yaml_config(_write(tmp_path, CONFIG_YAML))

        assert config.src.host == "10.0.0.5"
        assert config.src.port == 3307
        assert config.src.username == "reader"
        assert config.dest.host == "pg.internal"
        assert config.dest.port == 5432
        assert config.dest.database == "warehouse"
        assert config.max_workers == 2
        assert config.batch_size == 500

    def test_table_order_and_single_query(self, tmp_path):
        config = load_yaml_config(_write(tmp_path, CONFIG_YAML))

        assert list(config.tables) == ["users", "orders", "events"]
        assert config.tables["events"] == ["SELECT * FROM events"]
        assert config.unit_count == 4

    def test_defaults(self, tmp_path):
        config = load_yaml_config(_write(tmp_path, "tables:\n  users: [SELECT 1]\n"))

        assert config.max_workers is None
        assert config.batch_size == 10000
        assert config.retries == 0
        assert config.unit_timeout is None
        assert config.binary_mode == "auto"
        assert config.src.max_connections == 30

    def test_env_fallback_for_missing_fields(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MYSQL2PG_SRC_PASSWORD", "from-env")
        monkeypatch.setenv("MYSQL2PG_DEST_HOST", "pg.env:6543")

        config = load_yaml_config(_write(tmp_path, "src:\n  username: reader\ntables: {}\n"))

        assert config.src.password == "from-env"
        assert config.src.username == "reader"
        assert config.dest.host == "pg.env"
        assert config.dest.port == 6543

    def test_yaml_overrides_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MYSQL2PG_SRC_DATABASE", "from-env")

        config = load_yaml_config(_write(tmp_path, "src:\n  database: shop\ntables: {}\n"))

        assert config.src.database == "shop"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="찾을 수 없습니다"):
            load_yaml_config(tmp_path / "nope.yaml")

    def test_missing_tables(self, tmp_path):
        with pytest.raises(ConfigurationError, match="tables"):
            load_yaml_config(_write(tmp_path, "src:\n  host: localhost\n"))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError, match="YAML"):
            load_yaml_config(_write(tmp_path, "tables: [unclosed\n"))

    def test_invalid_values(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_yaml_config(_write(tmp_path, "tables:\n  users: [SELECT 1]\nmax_workers: 0\n"))

    def test_blank_query_rejected(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_yaml_config(_write(tmp_path, "tables:\n  users: ['  ']\n"))

    def test_source_connection_limit(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MYSQL2PG_SRC_MAX_CONNECTIONS", "8")

        config = load_yaml_config(_write(tmp_path, "tables: {}\n"))

        assert config.src.max_connections == 8
        assert "max_connections" not in config.src.to_dict()

    def test_binary_mode(self, tmp_path):
        config = load_yaml_config(_write(tmp_path, "tables: {}\nbinary_mode: hex\n"))

        assert config.binary_mode == "hex"

    def test_unknown_binary_mode_rejected(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_yaml_config(_write(tmp_path, "tables: {}\nbinary_mode: base64\n"))


class TestWorkerCount:

    def test_unbounded_uses_unit_count(self):
        config = MigrationConfig(tables={"a": ["q1", "q2"], "b": ["q3"]})

        assert config.worker_count == 3

    def test_bounded_by_max_workers(self):
        config = MigrationConfig(tables={"a": ["q1", "q2"], "b": ["q3"]}, max_workers=2)

        assert config.worker_count == 2

    def test_never_more_than_units(self):
        config = MigrationConfig(tables={"a": ["q1"]}, max_workers=8)

        assert config.worker_count == 1

    def test_minimum_one(self):
        assert MigrationConfig(tables={}).worker_count == 1
