"""Loading of scheduler configuration files.

The file suffix picks the parser. A document that parses to nothing (an empty
YAML file) means the default configuration.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from proc_metrics.core.schemas import MonitorSchedulerConfig

# Suffix (lower case) -> parser of the file's text
PARSERS: dict[str, Callable[[str], Any]] = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.loads,
}


def load_config(path: Path | str) -> MonitorSchedulerConfig:
    """Read ``path`` and validate it as a MonitorSchedulerConfig.

    Raises:
        FileNotFoundError: If ``path`` does not exist
        ValueError: If the suffix has no parser
        pydantic.ValidationError: If the content does not match the schema
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    parse = PARSERS.get(path.suffix.lower())
    if parse is None:
        known = ", ".join(sorted(PARSERS))
        raise ValueError(
            f"Unsupported config format: {path.suffix or '(none)'}. Use one of {known}"
        )

    return MonitorSchedulerConfig.model_validate(parse(path.read_text(encoding="utf-8")) or {})
