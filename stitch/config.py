"""Site configuration for Stitch.

Configuration lives in an optional ``stitch.yaml`` at the source root.
Values found there are overlaid on DEFAULT_CONFIG; command-line options
override both.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

CONFIG_FILENAME = "stitch.yaml"

DEFAULT_CONFIG = {
    "output_dir": "_build",
    "components_dir": "components",
    "ignore_files": [".gitignore", ".ignore"],
    "port": 3030,
    "ws_port": 3031,
    "debounce_ms": 100,
}


def load_config(source_root: Path) -> dict[str, Any]:
    """Load site configuration from stitch.yaml.

    Args:
        source_root: Root directory of the source tree.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ConfigError: If stitch.yaml cannot be read or parsed.
    """
    config_path = source_root / CONFIG_FILENAME
    config = copy.deepcopy(DEFAULT_CONFIG)
    if config_path.is_file():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot load {config_path}: {exc}") from exc
        if isinstance(loaded, dict):
            config.update(loaded)
    return config


def resolve_output_dir(source_root: Path, config: dict[str, Any]) -> Path:
    """Return the absolute output directory for a configuration.

    Relative ``output_dir`` values are taken relative to the source root.
    """
    output = Path(config.get("output_dir") or DEFAULT_CONFIG["output_dir"])
    if not output.is_absolute():
        output = source_root / output
    return output.resolve()
