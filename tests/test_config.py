"""Tests for company policy configuration loading."""

import importlib.util
import json
from pathlib import Path

import pytest

from companies.config import CompaniesConfig


class TestDefaults:
    def test_defaults(self) -> None:
        config = CompaniesConfig()
        assert config.property_limits_enabled
        assert config.reputation_averages_enabled
        assert not config.reputation_averages_bonus_enabled
        assert not config.vehicle_transfers_enabled
        assert config.base_plots_on_homestead_claim_stake == 10
        assert config.task_delay_seconds == 1.0

    @pytest.mark.parametrize(
        "field_name",
        ["base_plots_on_homestead_claim_stake", "task_delay_seconds", "daily_play_time_seconds"],
    )
    def test_negative_rejected(self, field_name) -> None:
        with pytest.raises(ValueError, match=field_name):
            CompaniesConfig(**{field_name: -1})

    def test_zero_day_rejected(self) -> None:
        with pytest.raises(ValueError, match="seconds_per_day"):
            CompaniesConfig(seconds_per_day=0)


class TestFromDict:
    def test_known_keys(self) -> None:
        config = CompaniesConfig.from_dict({"vehicle_transfers_enabled": True})
        assert config.vehicle_transfers_enabled

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown config keys"):
            CompaniesConfig.from_dict({"max_employees": 5})


class TestFromConfigDir:
    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch) -> None:
        for name in ("COMPANIES_CONFIG_DIR", "COMPANIES_LOG_LEVEL", "COMPANIES_LOG_JSON"):
            monkeypatch.delenv(name, raising=False)

    def test_repository_config(self) -> None:
        assert CompaniesConfig.from_config_dir() == CompaniesConfig()

    def test_explicit_dir(self, tmp_path) -> None:
        (tmp_path / "companies.json").write_text(
            json.dumps({"base_plots_on_homestead_claim_stake": 4}), encoding="utf-8",
        )
        config = CompaniesConfig.from_config_dir(tmp_path)
        assert config.base_plots_on_homestead_claim_stake == 4

    def test_dir_from_environment(self, tmp_path, monkeypatch) -> None:
        (tmp_path / "companies.json").write_text(
            json.dumps({"property_limits_enabled": False}), encoding="utf-8",
        )
        monkeypatch.setenv("COMPANIES_CONFIG_DIR", str(tmp_path))
        assert not CompaniesConfig.from_config_dir().property_limits_enabled

    def test_log_overrides(self, tmp_path, monkeypatch) -> None:
        (tmp_path / "companies.json").write_text("{}", encoding="utf-8")
        monkeypatch.setenv("COMPANIES_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("COMPANIES_LOG_JSON", "true")
        config = CompaniesConfig.from_config_dir(tmp_path)
        assert config.log_level == "DEBUG"
        assert config.log_json is True


class TestCheckConfigTool:
    @pytest.fixture
    def check(self):
        path = Path(__file__).resolve().parents[1] / "tools" / "check_config.py"
        loader = importlib.util.spec_from_file_location("check_config", path)
        module = importlib.util.module_from_spec(loader)
        loader.loader.exec_module(module)
        return module.check

    def test_shipped_config_passes(self, check, capsys) -> None:
        assert check() == 0
        assert "Config check passed." in capsys.readouterr().out

    def test_loader_errors_reported(self, check, tmp_path, capsys) -> None:
        path = tmp_path / "companies.json"
        path.write_text(json.dumps({"max_employees": 5}), encoding="utf-8")
        assert check(path) == 1
        assert "Unknown config keys" in capsys.readouterr().out

    def test_delay_order_checked(self, check, tmp_path, capsys) -> None:
        path = tmp_path / "companies.json"
        path.write_text(
            json.dumps({"task_delay_seconds": 5.0, "task_delay_long_seconds": 1.0}),
            encoding="utf-8",
        )
        assert check(path) == 1
        assert "task_delay_long_seconds" in capsys.readouterr().out
