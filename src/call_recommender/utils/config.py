from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import yaml


def load_settings(path: str | Path) -> Dict[str, Any]:
    path = Path(path)
    with path.open("r", encoding="utf-8") as handle:
        settings = yaml.safe_load(handle) or {}
    artifacts_dir = os.environ.get("CALL_RECOMMENDER_ARTIFACTS_DIR")
    if artifacts_dir:
        settings.setdefault("evaluation", {})["artifacts_dir"] = artifacts_dir
    return settings
