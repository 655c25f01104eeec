from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Dict


def _sha256_settings(settings: Dict[str, Any]) -> str:
    payload = json.dumps(settings, sort_keys=True, ensure_ascii=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ArtifactStore:
    def __init__(self, base_dir: str | Path, evaluation_id: str, run_id: str | None = None) -> None:
        self.base_dir = Path(base_dir)
        self.evaluation_id = evaluation_id
        self.run_id = run_id
        self.base_root = self.base_dir / evaluation_id
        self.root = self.base_root / "runs" / run_id if run_id else self.base_root

    @staticmethod
    def compute_evaluation_id(settings: Dict[str, Any]) -> str:
        return _sha256_settings(settings)

    def ensure_dir(self, *parts: str) -> Path:
        path = self.root.joinpath(*parts)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def path(self, *parts: str) -> Path:
        return self.root.joinpath(*parts)

    def write_json(self, rel_path: str, data: Any) -> Path:
        path = self.path(rel_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, ensure_ascii=True)
        return path

    def write_text(self, rel_path: str, text: str) -> Path:
        path = self.path(rel_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

