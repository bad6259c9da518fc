"""
Tests for configuration loading.

Covers:
- The shipped default configuration
- Environment overrides for the config path and database URL
- Validation of bad values
- Wiring config into the orchestrator
"""

from datetime import date
from decimal import Decimal

import pytest

from warehouse_config import CONFIG_PATH_ENV, DATABASE_URL_ENV, get_active_config
from warehouse_config.loader import compute_checksum, parse_ledger_config
from warehouse_config.schema import LedgerConfig, PricingConfig
from warehouse_services.notifier import NullNotifier
from warehouse_services.outflow_orchestrator import OutflowOrchestrator


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)


class TestDefaultConfig:

    def test_default_rates(self):
        config = get_active_config()

        assert config.pricing.six_month_rate == Decimal("36")
        assert config.pricing.twelve_month_rate == Decimal("55")
        assert config.sequences.invoice_base == 1000
        assert config.notifications.enabled
        assert config.database.url.startswith("postgresql://")
        assert len(config.checksum) == 64

    def test_trace_logged(self, captured_logs):
        get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "WAREHOUSE_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["six_month_rate"] == "36"


class TestOverrides:

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "ledger.yaml"
        path.write_text('pricing:\n  six_month_rate: "40"\n  twelve_month_rate: "60"\n')

        config = get_active_config(path)

        assert config.pricing.six_month_rate == Decimal("40")
        assert config.pricing.twelve_month_rate == Decimal("60")
        assert config.sequences.invoice_base == 1000

    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "ledger.yaml"
        path.write_text("sequences:\n  invoice_base: 5000\n")
        monkeypatch.setenv(CONFIG_PATH_ENV, str(path))

        assert get_active_config().sequences.invoice_base == 5000

    def test_database_url_from_environment(self, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "sqlite:///ledger.db")

        assert get_active_config().database.url == "sqlite:///ledger.db"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "nope.yaml")

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        config = get_active_config(path)

        assert config.pricing == PricingConfig()
        assert config.database.url == "sqlite://"


class TestValidation:

    def test_negative_rate(self):
        with pytest.raises(ValueError, match="six_month_rate"):
            parse_ledger_config({"pricing": {"six_month_rate": "-1"}})

    def test_non_numeric_rate(self):
        with pytest.raises(ValueError, match="must be a number"):
            parse_ledger_config({"pricing": {"twelve_month_rate": "lots"}})

    def test_negative_invoice_base(self):
        with pytest.raises(ValueError, match="invoice_base"):
            parse_ledger_config({"sequences": {"invoice_base": -1}})

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})


class TestConfigWiring:

    def test_orchestrator_from_config(
        self, session, deterministic_clock, warehouse_context, create_record
    ):
        config = parse_ledger_config(
            {
                "pricing": {"six_month_rate": "40", "twelve_month_rate": "60"},
                "sequences": {"invoice_base": 5000},
                "notifications": {"enabled": False},
            }
        )
        orchestrator = OutflowOrchestrator.from_config(session, config, clock=deterministic_clock)
        inflow = create_record(bags=10, start_date=date(2023, 1, 1))

        result = orchestrator.record_withdrawal(warehouse_context, inflow.record_id, 10, date(2023, 3, 1))

        assert orchestrator.pricing.six_month_rate == Decimal("40")
        assert result.rent_collected == Decimal("400")
        assert result.outflow_invoice_no == "BAMA-OUT-5001"
        assert isinstance(orchestrator._notifier, NullNotifier)

    def test_defaults_dataclass(self):
        assert LedgerConfig.with_defaults().pricing.six_month_rate == Decimal("36")
