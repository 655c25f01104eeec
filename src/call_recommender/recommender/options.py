from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class QueryOptions:
    use_class_context: bool = True
    use_method_context: bool = True
    use_definition: bool = True
    use_parameter_sites: bool = True
    use_double_precision: bool = True
    min_probability: float = 0.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.min_probability <= 1.0:
            raise ValueError(f"min_probability must be within [0, 1], got {self.min_probability}")

    @property
    def bytes_per_value(self) -> int:
        return 8 if self.use_double_precision else 4

    @classmethod
    def from_settings(cls, settings: Optional[Dict[str, Any]]) -> "QueryOptions":
        conf = (settings or {}).get("recommender", {}) or {}
        defaults = cls()
        return cls(
            use_class_context=bool(conf.get("use_class_context", defaults.use_class_context)),
            use_method_context=bool(conf.get("use_method_context", defaults.use_method_context)),
            use_definition=bool(conf.get("use_definition", defaults.use_definition)),
            use_parameter_sites=bool(conf.get("use_parameter_sites", defaults.use_parameter_sites)),
            use_double_precision=bool(conf.get("use_double_precision", defaults.use_double_precision)),
            min_probability=float(conf.get("min_probability", defaults.min_probability)),
        )
