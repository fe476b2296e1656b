#!/usr/bin/env python3
"""Company policy config checks against config/companies.json."""

import json
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
CONFIG_PATH = ROOT / "config" / "companies.json"

sys.path.insert(0, str(ROOT / "src"))

from companies.config import CompaniesConfig  # noqa: E402

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def check(path: Path = CONFIG_PATH) -> int:
    data = load_json(path)
    errors: list[str] = []

    try:
        config = CompaniesConfig.from_dict(data)
    except (TypeError, ValueError) as exc:
        errors.append(str(exc))
        config = None

    if config is not None:
        # --- Settings the loader accepts but that make no sense shipped ---
        if isinstance(data.get("base_plots_on_homestead_claim_stake"), float):
            errors.append("base_plots_on_homestead_claim_stake must be a whole number of plots")
        if config.task_delay_long_seconds < config.task_delay_seconds:
            errors.append("task_delay_long_seconds must not be shorter than task_delay_seconds")
        if config.log_level.upper() not in LOG_LEVELS:
            errors.append(f"log_level must be one of {sorted(LOG_LEVELS)}, got {config.log_level!r}")

    if errors:
        print("Config check failed:")
        for err in errors:
            print(f"- {err}")
        return 1

    print("Config check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(check())
