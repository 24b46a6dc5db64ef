import copy
import json
from pathlib import Path

from cfp.schema import Scenario


def write_scenario(tmp_path: Path, data: dict, filename: str = "scenario.json") -> Path:
    path = tmp_path / filename
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def clone_scenario(data: dict) -> dict:
    return copy.deepcopy(data)


def scenario_dict(years: list[dict], **assumptions) -> dict:
    """Small ON scenario starting in 2025 with flat returns unless overridden."""
    base = {
        "province": "ON",
        "start_year": years[0]["year"] if years else 2025,
        "num_years": len(years),
        "inflation_rate": 0.0,
        "asset_returns": {"equity": 0.0, "fixed_income": 0.0, "cash": 0.0, "savings": 0.0},
    }
    base.update(assumptions)
    return {"id": "test", "name": "Test", "assumptions": base, "years": years}


def build_scenario(years: list[dict], **assumptions) -> Scenario:
    return Scenario.from_dict(scenario_dict(years, **assumptions))
