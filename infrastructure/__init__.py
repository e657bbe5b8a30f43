"""
INSPECTOR INFRASTRUCTURE - System-Level Modules

This package contains infrastructure components:
- config: Typed configuration loaded from config/inspector.toml
- logger: Edit event recording (ring buffer + optional JSONL files)
"""

from infrastructure.config import InspectorConfig, get_config, load_config
from infrastructure.logger import EditEvent, EditEventType, EditLogger, get_logger

__all__ = [
    "InspectorConfig",
    "get_config",
    "load_config",
    "EditEvent",
    "EditEventType",
    "EditLogger",
    "get_logger",
]
