"""
CLI tests (in-process ledger commands, no daemon).
"""
import logging

import pytest
from typer.testing import CliRunner

import carbonledger.cli as cli
from carbonledger.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    logger = logging.getLogger("carbonledger")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers = handlers
    logger.setLevel(level)


@pytest.fixture
def home(tmp_path, monkeypatch):
    root = tmp_path / ".carbonledger"
    monkeypatch.setattr(cli, "CCL_DIR", root)
    monkeypatch.setattr(cli, "LOG_DIR", root / "logs")
    monkeypatch.setattr(cli, "CONFIG_DIR", root / "config")
    monkeypatch.setattr(cli, "LEDGER_CONFIG_FILE", root / "config" / "ledger.yaml")
    monkeypatch.setenv("CCL_DB_PATH", str(root / "ledger.db"))
    return root


def invoke(*args):
    return runner.invoke(app, list(args))


class TestInit:
    def test_init_creates_runtime(self, home):
        result = invoke("init")
        assert result.exit_code == 0, result.output
        assert (home / "ledger.db").exists()
        assert "uri_requires_active: false" in (home / "config" / "ledger.yaml").read_text()

    def test_ledger_commands_need_init(self, home):
        result = invoke("emission", "show", "0xA")
        assert result.exit_code == 1
        assert "No ledger database" in result.output


class TestLedgerCommands:
    @pytest.fixture(autouse=True)
    def initialized(self, home):
        assert invoke("init").exit_code == 0

    def test_record_mint_offset(self):
        result = invoke("emission", "record", "100", "--as", "0xA")
        assert result.exit_code == 0, result.output
        assert "Outstanding: 100" in result.output

        result = invoke("credit", "mint", "50", "--source", "Solar", "-d", "100", "--as", "0xA")
        assert result.exit_code == 0, result.output
        assert "Credit #1 minted" in result.output

        result = invoke("credit", "offset", "1", "--as", "0xA")
        assert result.exit_code == 0, result.output

        result = invoke("emission", "show", "0xA")
        assert "50 t CO2 outstanding" in result.output

        result = invoke("credit", "show", "1")
        assert "Offset" in result.output
        assert "Solar" in result.output

    def test_rejection_exits_non_zero(self):
        invoke("credit", "mint", "50", "--source", "Wind", "--as", "0xA")

        result = invoke("credit", "offset", "1", "--as", "0xB")
        assert result.exit_code == 1
        assert "Unauthorized: Not token owner" in result.output

        result = invoke("credit", "offset", "1", "--as", "0xA")
        assert result.exit_code == 1
        assert "InsufficientBalance" in result.output

        result = invoke("credit", "show", "7")
        assert result.exit_code == 1
        assert "NotFound" in result.output

    def test_uri_and_list(self):
        invoke("credit", "mint", "5", "-s", "Hydro", "--as", "0xA")
        invoke("credit", "mint", "6", "-s", "Tidal", "--as", "0xA")

        assert "no URI set" in invoke("credit", "uri", "2").output
        assert invoke("credit", "set-uri", "2", "ipfs://tidal", "--as", "0xA").exit_code == 0
        assert "ipfs://tidal" in invoke("credit", "uri", "2").output

        result = invoke("credit", "list", "0xA")
        assert result.exit_code == 0
        assert "Hydro" in result.output and "Tidal" in result.output

    def test_replay_and_audit(self):
        invoke("emission", "record", "10", "--as", "0xA")
        invoke("credit", "mint", "5", "-s", "Hydro", "--as", "0xA")

        result = invoke("replay")
        assert result.exit_code == 0, result.output
        assert "PASS" in result.output

        result = invoke("audit")
        assert result.exit_code == 0, result.output
        assert "FAIL" not in result.output

    def test_metrics_and_version(self):
        invoke("emission", "record", "10", "--as", "0xA")
        result = invoke("metrics")
        assert result.exit_code == 0, result.output
        assert "Companies" in result.output
        assert invoke("version").exit_code == 0

    def test_rejection_logs_stay_quiet_by_default(self):
        invoke("credit", "mint", "50", "--source", "Wind", "--as", "0xA")

        result = invoke("credit", "offset", "1", "--as", "0xB")
        assert result.exit_code == 1
        assert "Ledger operation rejected" not in result.output

        logger = logging.getLogger("carbonledger")
        assert logger.level == logging.ERROR
        assert logger.handlers

    def test_log_level_option(self):
        result = invoke("--log-level", "DEBUG", "emission", "show", "0xA")
        assert result.exit_code == 0, result.output
        assert logging.getLogger("carbonledger").level == logging.DEBUG
