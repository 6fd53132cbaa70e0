import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import toml

from codesigndoc.src.core.errors import ConfigError

DEFAULT_EXPORT_DIR = "codesigndoc_exports"


@dataclass(frozen=True)
class ScanConfig:
    """Settings for a scan, merged from the config file and the environment"""

    export_dir: Path
    profiles_dir: Optional[Path] = None  # None = Xcode default
    build_timeout: Optional[float] = None  # None = wait as long as the build runs
    xcodebuild: Tuple[str, ...] = ("xcodebuild",)


def get_config_path() -> Path:
    """Return the path to the configuration file."""
    env_path = os.environ.get("CODESIGNDOC_CONFIG")
    if env_path:
        return Path(env_path)
    return Path.home() / ".codesigndoc" / "config.toml"


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from TOML file."""
    config_path = config_path or get_config_path()
    if not config_path.exists():
        return {}

    try:
        return toml.load(config_path)
    except (toml.TomlDecodeError, OSError) as e:
        raise ConfigError(f"Failed to load config {config_path}: {e}") from e


def _parse_timeout(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid build timeout: {value!r}")
    if timeout <= 0:
        raise ConfigError(f"Build timeout must be positive, got {value!r}")
    return timeout


def get_scan_config(config_path: Optional[Path] = None) -> ScanConfig:
    """Get scan settings, environment variables override the config file."""
    scan_config = load_config(config_path).get("scan", {})

    export_dir = os.environ.get("CODESIGNDOC_EXPORT_DIR") or scan_config.get(
        "export_dir", DEFAULT_EXPORT_DIR
    )
    profiles_dir = os.environ.get("CODESIGNDOC_PROFILES_DIR") or scan_config.get(
        "profiles_dir"
    )
    timeout = os.environ.get("CODESIGNDOC_BUILD_TIMEOUT") or scan_config.get(
        "build_timeout"
    )
    xcodebuild = os.environ.get("CODESIGNDOC_XCODEBUILD") or scan_config.get(
        "xcodebuild_path", "xcodebuild"
    )

    return ScanConfig(
        export_dir=Path(export_dir).expanduser(),
        profiles_dir=Path(profiles_dir).expanduser() if profiles_dir else None,
        build_timeout=_parse_timeout(timeout),
        xcodebuild=(str(xcodebuild),),
    )
