"""
Save tray configuration management.

Configuration is read from multiple sources with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/save_tray.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The TrayConfig
dataclass provides typed access to all settings.

Usage:
    from save_tray.config import config

    print(config.channel.commit_timeout_seconds)
    print(config.channel.namespace, config.channel.key)

Environment Variable Mapping:
    SAVE_TRAY_TIMEOUT       -> channel.commit_timeout_seconds
    SAVE_TRAY_NAMESPACE     -> channel.namespace
    SAVE_TRAY_KEY           -> channel.key
    SAVE_TRAY_HOST          -> server.host
    SAVE_TRAY_PORT          -> server.port
    SAVE_TRAY_DOCUMENTS     -> storage.documents_path
    SAVE_TRAY_LOG_LEVEL     -> logging.level
"""

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/, data/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "save_tray.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "save_tray.example.ini"


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class ChannelSettings:
    """Delegated write channel configuration."""

    commit_timeout_seconds: float = 8.0
    namespace: str = "save-tray"
    key: str = "participants"


@dataclass
class ServerSettings:
    """Authority endpoint network configuration."""

    host: str = "127.0.0.1"
    port: int = 8100


@dataclass
class StorageSettings:
    """File-backed document store configuration."""

    documents_path: str = "data/documents"

    @property
    def absolute_path(self) -> Path:
        """Get absolute path to the documents directory."""
        p = Path(self.documents_path)
        if p.is_absolute():
            return p
        return PROJECT_ROOT / p


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed"] = "detailed"


@dataclass
class TrayConfig:
    """
    Complete save tray configuration.

    Aggregates all settings sections. Access via the module-level `config`
    singleton.
    """

    channel: ChannelSettings = field(default_factory=ChannelSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _load_from_ini(parser: configparser.ConfigParser, cfg: TrayConfig) -> None:
    """Load configuration from parsed INI file into TrayConfig."""
    if parser.has_section("channel"):
        if parser.has_option("channel", "commit_timeout_seconds"):
            cfg.channel.commit_timeout_seconds = parser.getfloat(
                "channel", "commit_timeout_seconds"
            )
        if parser.has_option("channel", "namespace"):
            cfg.channel.namespace = parser.get("channel", "namespace")
        if parser.has_option("channel", "key"):
            cfg.channel.key = parser.get("channel", "key")

    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            cfg.server.host = parser.get("server", "host")
        if parser.has_option("server", "port"):
            cfg.server.port = parser.getint("server", "port")

    if parser.has_section("storage"):
        if parser.has_option("storage", "documents_path"):
            cfg.storage.documents_path = parser.get("storage", "documents_path")

    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed"):
                cfg.logging.format = val  # type: ignore[assignment]


def _apply_env_overrides(cfg: TrayConfig) -> None:
    """Apply environment variable overrides to configuration."""
    if env_timeout := os.getenv("SAVE_TRAY_TIMEOUT"):
        cfg.channel.commit_timeout_seconds = float(env_timeout)
    if env_namespace := os.getenv("SAVE_TRAY_NAMESPACE"):
        cfg.channel.namespace = env_namespace
    if env_key := os.getenv("SAVE_TRAY_KEY"):
        cfg.channel.key = env_key

    if env_host := os.getenv("SAVE_TRAY_HOST"):
        cfg.server.host = env_host
    if env_port := os.getenv("SAVE_TRAY_PORT"):
        cfg.server.port = int(env_port)

    if env_documents := os.getenv("SAVE_TRAY_DOCUMENTS"):
        cfg.storage.documents_path = env_documents

    if env_log := os.getenv("SAVE_TRAY_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()


def load_config(config_file: Path | None = None) -> TrayConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/save_tray.ini (or the explicit ``config_file``)
        3. config/save_tray.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        TrayConfig: Fully populated configuration object.
    """
    cfg = TrayConfig()

    if config_file is None:
        if CONFIG_FILE.exists():
            config_file = CONFIG_FILE
        elif CONFIG_EXAMPLE.exists():
            config_file = CONFIG_EXAMPLE

    if config_file is not None and Path(config_file).exists():
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    _apply_env_overrides(cfg)

    return cfg


def reload_config() -> "TrayConfig":
    """
    Reload configuration from disk and environment.

    Rebinds the module-level `config` singleton. Objects that already copied
    a value (for example a running writer's timeout) keep the old value.
    """
    global config
    config = load_config()
    return config


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

config = load_config()


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_config_status() -> dict:
    """
    Get configuration status for diagnostics.

    Returns a dictionary with configuration source information.
    """
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "commit_timeout_seconds": config.channel.commit_timeout_seconds,
        "namespace": config.channel.namespace,
        "key": config.channel.key,
        "documents_path": str(config.storage.absolute_path),
    }


def print_config_summary() -> None:
    """Print a summary of current configuration to stdout."""
    status = get_config_status()
    print("\n" + "=" * 60)
    print("SAVE TRAY CONFIGURATION")
    print("=" * 60)
    print(f"Config file: {status['config_file_path']}")
    print(f"File exists: {status['config_file_exists']}")
    if status["using_example"]:
        print("WARNING: Using example config (copy to save_tray.ini to customise)")
    print("-" * 60)
    print(f"Attachment:   {status['namespace']}/{status['key']}")
    print(f"Timeout:      {status['commit_timeout_seconds']}s")
    print(f"Endpoint:     {config.server.host}:{config.server.port}")
    print(f"Documents:    {status['documents_path']}")
    print(f"Log level:    {config.logging.level}")
    print("=" * 60 + "\n")
