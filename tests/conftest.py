import json
from pathlib import Path

import pytest


@pytest.fixture
def sample_scenario_dict() -> dict:
    return json.loads(Path("sample_scenario.json").read_text(encoding="utf-8"))
