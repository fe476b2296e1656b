"""Company policy configuration.

All tunable behaviour of the company engine lives in a single JSON file
(``config/companies.json``). The file is loaded once into an immutable
``CompaniesConfig``; components read flags from it and never mutate it.

Environment overrides (read through python-dotenv, so a local ``.env``
file works as well as real environment variables):

- COMPANIES_CONFIG_DIR: directory containing companies.json
- COMPANIES_LOG_LEVEL: overrides ``log_level``
- COMPANIES_LOG_JSON: "1"/"true" switches to JSON log rendering
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"
CONFIG_FILENAME = "companies.json"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class CompaniesConfig:
    """Policy flags and constants for the company engine.

    property_limits_enabled:
        HQ entitlement scales with employee count, employees may not join
        while holding a personal homestead, and employee citizenship is
        mirrored from the company.
    reputation_averages_enabled:
        The legal identity's reputation is the average of its employees'.
    reputation_averages_bonus_enabled:
        Strip the "speaks well of others" bonus before averaging.
    deny_company_members_reputation_enabled:
        Reputation given between employees of the same company is removed.
    """
    property_limits_enabled: bool = True
    reputation_averages_enabled: bool = True
    reputation_averages_bonus_enabled: bool = False
    deny_company_members_reputation_enabled: bool = True
    vehicle_transfers_enabled: bool = False
    vehicle_transfers_use_company_name_enabled: bool = True
    base_plots_on_homestead_claim_stake: int = 10
    task_delay_seconds: float = 1.0
    task_delay_long_seconds: float = 5.0
    daily_play_time_seconds: float = 1800.0
    seconds_per_day: float = 86400.0
    log_level: str = "INFO"
    log_json: bool = False

    def __post_init__(self) -> None:
        if self.base_plots_on_homestead_claim_stake < 0:
            raise ValueError(
                "base_plots_on_homestead_claim_stake must be >= 0, got "
                f"{self.base_plots_on_homestead_claim_stake}"
            )
        for name in (
            "task_delay_seconds",
            "task_delay_long_seconds",
            "daily_play_time_seconds",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.seconds_per_day <= 0:
            raise ValueError(
                f"seconds_per_day must be > 0, got {self.seconds_per_day}"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompaniesConfig:
        """Build a config from a plain mapping. Unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_config_dir(cls, config_dir: Optional[Path] = None) -> CompaniesConfig:
        """Load ``companies.json`` from a config directory.

        Falls back to COMPANIES_CONFIG_DIR, then to the repository's
        ``config/`` directory. Environment log overrides are applied last.
        """
        load_dotenv()
        if config_dir is None:
            env_dir = os.getenv("COMPANIES_CONFIG_DIR")
            config_dir = Path(env_dir) if env_dir else DEFAULT_CONFIG_DIR
        path = config_dir / CONFIG_FILENAME
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        return cls.from_dict(data).with_env_overrides()

    def with_env_overrides(self) -> CompaniesConfig:
        overrides: dict[str, Any] = {}
        level = os.getenv("COMPANIES_LOG_LEVEL")
        if level:
            overrides["log_level"] = level
        log_json = os.getenv("COMPANIES_LOG_JSON")
        if log_json:
            overrides["log_json"] = log_json.strip().lower() in _TRUTHY
        return replace(self, **overrides) if overrides else self
