from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping

ENV_PREFIX = "BILL_INGEST_"
DEFAULT_CONFIG_NAME = "bill-ingest.json"


@dataclass
class IngestConfig:
    header_scan_rows: int = 20
    min_header_matches: int = 1
    keep_empty_sections: bool = False
    id_width: int = 3
    store_path: str = "bill-ingest-store.json"
    audit_collection: str = "bulk_uploads"

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _coerce(name: str, expected: type, value: Any) -> Any:
    if expected is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f"Config '{name}' must be a boolean, got {value!r}")
    if expected is int:
        if isinstance(value, bool):
            raise ValueError(f"Config '{name}' must be an integer, got {value!r}")
        try:
            number = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Config '{name}' must be an integer, got {value!r}") from exc
        if number < 1:
            raise ValueError(f"Config '{name}' must be at least 1, got {number}")
        return number
    return str(value)


def _field_types() -> dict[str, type]:
    types = {"int": int, "bool": bool, "str": str}
    return {f.name: types[f.type] if isinstance(f.type, str) else f.type for f in fields(IngestConfig)}


def load_config(path: str | Path | None = None, env: Mapping[str, str] | None = None) -> IngestConfig:
    """
    Build the effective config: defaults, then the JSON file (if any), then
    BILL_INGEST_* environment variables.
    """
    env = os.environ if env is None else env
    types = _field_types()
    values: dict[str, Any] = {}

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ValueError(f"Config not found: {config_path}")
        try:
            payload = json.loads(config_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Could not read config: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValueError("Config root must be a JSON object.")
        unknown = sorted(set(payload) - set(types))
        if unknown:
            raise ValueError(f"Unknown config key(s): {', '.join(unknown)}")
        for name, value in payload.items():
            values[name] = _coerce(name, types[name], value)

    for name, expected in types.items():
        raw = env.get(ENV_PREFIX + name.upper())
        if raw is not None and raw != "":
            values[name] = _coerce(name, expected, raw)

    return IngestConfig(**values)


def starter_config_text() -> str:
    return json.dumps(IngestConfig().as_dict(), indent=2) + "\n"
