import pytest

from carbonledger.daemon.utils.config_loader import LedgerConfig, config_loader


@pytest.fixture(autouse=True)
def default_config():
    """Every test starts from built-in defaults and leaves them behind."""
    previous = config_loader.config
    config_loader.config = LedgerConfig()
    yield config_loader
    config_loader.config = previous


@pytest.fixture
def ledger_db(tmp_path, monkeypatch):
    db_path = tmp_path / "ledger.db"
    monkeypatch.setenv("CCL_DB_PATH", str(db_path))
    from carbonledger.daemon.db import init_db

    init_db()
    return db_path
