"""
INSPECTOR CONFIG - Typed Configuration

Configuration lives in config/inspector.toml and is loaded once into an
InspectorConfig struct. A missing or malformed file never stops the
inspector: a warning is emitted and the defaults are used.

Usage:
    from infrastructure.config import get_config

    config = get_config()
    config.view.layout_direction      # LayoutDirection.LR
    config.navigator.cross_axis       # 10.0
"""
import warnings
from pathlib import Path
from typing import Any, Dict, Optional, Union

import msgspec

from core.ontology import LayoutDirection
from infrastructure.logger import LoggerConfig

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "inspector.toml"


# =============================================================================
# CONFIG SECTIONS
# =============================================================================

class ViewConfig(msgspec.Struct, kw_only=True, frozen=True):
    """[view] - initial view preferences."""
    layout_direction: LayoutDirection = LayoutDirection.LR
    group_by_modules: bool = True
    embed_special_actions: bool = True


class NavigatorConfig(msgspec.Struct, kw_only=True, frozen=True):
    """[navigator] - scoring weights for keyboard navigation."""
    cross_axis: float = 10.0
    center_align: float = 0.1


class LoggingConfig(msgspec.Struct, kw_only=True, frozen=True):
    """[logging] - edit event recorder."""
    enable_file_log: bool = False
    log_path: str = "./workspace/logs"
    buffer_size: int = 10000

    def to_logger_config(self) -> LoggerConfig:
        return LoggerConfig(
            enable_file_log=self.enable_file_log,
            log_path=Path(self.log_path),
            buffer_size=self.buffer_size,
        )


class InspectorConfig(msgspec.Struct, kw_only=True, frozen=True):
    """Complete inspector configuration."""
    view: ViewConfig = msgspec.field(default_factory=ViewConfig)
    navigator: NavigatorConfig = msgspec.field(default_factory=NavigatorConfig)
    logging: LoggingConfig = msgspec.field(default_factory=LoggingConfig)


# =============================================================================
# LOADING
# =============================================================================

def load_toml_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load the raw TOML tables.

    Returns:
        Dict of sections, or {} if the file cannot be read
    """
    try:
        import tomllib
        config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH

        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        warnings.warn(f"Failed to load config from TOML: {e}")
        return {}


def load_config(path: Optional[Union[str, Path]] = None) -> InspectorConfig:
    """
    Load and validate configuration.

    Unknown sections and keys are ignored. If a section fails validation
    the whole config falls back to defaults.
    """
    raw = load_toml_config(path)
    try:
        return msgspec.convert(raw, InspectorConfig)
    except msgspec.ValidationError as e:
        warnings.warn(f"Invalid config, using defaults: {e}")
        return InspectorConfig()


_config: Optional[InspectorConfig] = None


def get_config() -> InspectorConfig:
    """Get the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration (used by tests)."""
    global _config
    _config = None
