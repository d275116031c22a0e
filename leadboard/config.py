"""Configuration helpers for the lead workspace."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

LOGGER = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:5000/api"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class ConfigurationError(RuntimeError):
    """Raised when configuration files are missing or malformed."""


_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}


def load_configuration(path: str | Path) -> Dict[str, Any]:
    """Load configuration data from a JSON or YAML file."""

    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Configuration file '{file_path}' was not found")

    if file_path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported configuration format '{file_path.suffix}'. Supported extensions: {sorted(_SUPPORTED_EXTENSIONS)}"
        )

    text = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Configuration file '{file_path}' could not be parsed: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{file_path}' must contain a mapping at the top level")
    return data


def normalise_api_url(url: str) -> str:
    """Ensure the base URL ends with ``/api``."""

    url = url.strip().rstrip("/")
    if not url.endswith("/api"):
        url = f"{url}/api"
    return url


@dataclass
class ClientSettings:
    """Runtime settings shared by the API client and workspace."""

    api_url: str = DEFAULT_API_URL
    api_token: Optional[str] = None
    timeout_seconds: float = 30.0
    list_page_size: int = 10
    board_page_size: int = 250
    board_cap: int = 500
    debounce_seconds: float = 0.3
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    bulk_max_workers: Optional[int] = None
    permissions: Dict[str, Dict[str, bool]] = field(default_factory=dict)
    log_level: Optional[str] = None
    log_format: Optional[str] = None

    def __post_init__(self) -> None:
        self.api_url = normalise_api_url(self.api_url)
        if self.board_page_size <= 0 or self.board_cap <= 0:
            raise ConfigurationError("Board page size and cap must be positive")
        if self.board_cap > 2 * self.board_page_size:
            raise ConfigurationError("Board cap cannot exceed two board pages")

    @classmethod
    def from_mapping(cls, config: Optional[Mapping[str, Any]] = None, *, environ: Optional[Mapping[str, str]] = None) -> "ClientSettings":
        config = config or {}
        environ = os.environ if environ is None else environ

        api = _section(config, "api")
        board = _section(config, "board")
        listing = _section(config, "list")
        upload = _section(config, "import")
        bulk = _section(config, "bulk")
        logging_cfg = _section(config, "logging")

        try:
            return cls(
                api_url=environ.get("LEADBOARD_API_URL") or api.get("url") or DEFAULT_API_URL,
                api_token=environ.get("LEADBOARD_API_TOKEN") or api.get("token"),
                timeout_seconds=float(api.get("timeout", 30.0)),
                list_page_size=int(listing.get("page_size", 10)),
                board_page_size=int(board.get("page_size", 250)),
                board_cap=int(board.get("cap", 500)),
                debounce_seconds=float(config.get("debounce_seconds", 0.3)),
                max_upload_bytes=int(upload.get("max_bytes", DEFAULT_MAX_UPLOAD_BYTES)),
                bulk_max_workers=int(bulk["max_workers"]) if bulk.get("max_workers") else None,
                permissions={str(role): dict(actions) for role, actions in (config.get("permissions") or {}).items()},
                log_level=logging_cfg.get("level"),
                log_format=logging_cfg.get("format"),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid configuration value: {exc}") from exc


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = config.get(name) or {}
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"Configuration section '{name}' must be a mapping")
    return section
