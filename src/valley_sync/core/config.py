"""
Configuration management for Valley Sync
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "valley-sync"
    return Path.home() / ".config" / "valley-sync"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "valley-sync"
    return Path.home() / ".local" / "share" / "valley-sync"


@dataclass
class PathsConfig:
    """Local mirror layout.

    Every directory defaults to a folder under the data directory so a fresh
    install works without editing config.toml.
    """

    saves_dir: str = field(default_factory=lambda: str(get_data_dir() / "saves"))
    mods_dir: str = field(default_factory=lambda: str(get_data_dir() / "mods"))
    configs_dir: str = field(default_factory=lambda: str(get_data_dir() / "configs"))
    backups_dir: str = field(default_factory=lambda: str(get_data_dir() / "backups"))
    downloads_dir: str = field(
        default_factory=lambda: str(get_data_dir() / "downloads")
    )
    apk_dir: str = field(default_factory=lambda: str(get_data_dir() / "apks"))
    logs_dir: str = field(default_factory=lambda: str(get_data_dir() / "logs"))
    profiles_file: str = field(
        default_factory=lambda: str(get_data_dir() / "devices.json")
    )
    sync_log_file: str = field(
        default_factory=lambda: str(get_data_dir() / "last_sync.log")
    )

    @property
    def manual_downloads_dir(self) -> str:
        """Holding directory the operator drops manually downloaded archives into."""
        return str(Path(self.downloads_dir) / "manual")


@dataclass
class DeviceConfig:
    """Configuration for reaching the device."""

    adb_path: str = "adb"
    package_name: str = "abc.smapi.gameloader"
    app_data_root: str = "/storage/emulated/0/Android/data/abc.smapi.gameloader/files"
    # Folder names under a portable device's storage leading to app_data_root
    media_root_segments: List[str] = field(
        default_factory=lambda: ["Android", "data", "abc.smapi.gameloader", "files"]
    )
    saves_folder: str = "Saves"
    mods_folder: str = "Mods"
    config_file_name: str = "config.json"
    internal_config: List[str] = field(
        default_factory=lambda: ["Mods", "smapi-internal", "config.user.json"]
    )
    error_log: List[str] = field(
        default_factory=lambda: ["ErrorLogs", "SMAPI-latest.txt"]
    )
    poll_interval_seconds: float = 0.5
    copy_timeout_seconds: float = 60.0
    install_timeout_seconds: float = 120.0
    command_timeout_seconds: float = 300.0

    def validate(self) -> None:
        """Validate device configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        if self.copy_timeout_seconds < self.poll_interval_seconds:
            raise ValueError("copy_timeout_seconds must be >= poll_interval_seconds")
        if not self.media_root_segments:
            raise ValueError("media_root_segments must not be empty")


@dataclass
class SyncConfig:
    """Configuration for reconciliation."""

    tolerance_seconds: int = 60  # Deltas below this count as "in sync"
    backup_retention: int = 5  # Backup generations kept per save

    def validate(self) -> None:
        """Validate sync configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.tolerance_seconds < 0:
            raise ValueError("tolerance_seconds must be >= 0")
        if self.backup_retention < 1:
            raise ValueError("backup_retention must be >= 1")


@dataclass
class UpdatesConfig:
    """Configuration for the update catalog and download tiers."""

    catalog_url: str = "https://smapi.io/api/v3.0/mods"
    api_version: str = "4.0.0"
    game_version: str = "1.6.15"
    platform: str = "Android"
    nexus_game_domain: str = "stardewvalley"
    nexus_api_url: str = "https://api.nexusmods.com/v1"
    github_api_url: str = "https://api.github.com"
    archive_pattern: str = r"\.(zip|7z)$"
    request_timeout_seconds: float = 30.0


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/valley-sync/valley-sync.log)
    )
    console_output: bool = False  # Also send log records to stderr


@dataclass
class Config:
    """Main configuration object."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    device: DeviceConfig = field(default_factory=DeviceConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    updates: UpdatesConfig = field(default_factory=UpdatesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    nexus_api_key: Optional[str] = None


def _find_project_config() -> Optional[Path]:
    """Find config.toml in project root by looking for pyproject.toml.

    Returns:
        Path to config.toml in project root, or None if not found
    """
    try:
        current = Path(__file__).resolve().parent
        for parent in [current] + list(current.parents):
            if (parent / "pyproject.toml").exists():
                config_path = parent / "config.toml"
                if config_path.exists():
                    return config_path
                return None
    except OSError:
        pass
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/valley-sync (or ~/.config/valley-sync)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_nexus_key_path() -> Path:
    """Credential file holding a Nexus Mods personal API key."""
    return get_config_dir() / "nexus_api_key"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Valley Sync Configuration

[paths]
# Local mirror directories (default: ~/.local/share/valley-sync/...)
# saves_dir = "~/ValleySync/Saves"
# mods_dir = "~/ValleySync/Mods"
# configs_dir = "~/ValleySync/Configs"
# backups_dir = "~/ValleySync/Backups"
# downloads_dir = "~/ValleySync/Downloads"
# apk_dir = "~/ValleySync/APK"
# logs_dir = "~/ValleySync/Logs"

[device]
# adb executable (name on PATH or absolute path)
adb_path = "adb"

# Android package of the game loader
package_name = "abc.smapi.gameloader"

# Shell path of the application-data root on the device
app_data_root = "/storage/emulated/0/Android/data/abc.smapi.gameloader/files"

# Folder names under a portable device's storage that lead to the same root
media_root_segments = ["Android", "data", "abc.smapi.gameloader", "files"]

# Seconds between completion checks for copy operations
poll_interval_seconds = 0.5

# Give up waiting for a copy/move after this many seconds
copy_timeout_seconds = 60

# Give up waiting for the app data folder after an install
install_timeout_seconds = 120

[sync]
# Timestamps closer than this are treated as already in sync
tolerance_seconds = 60

# Backup generations kept per save
backup_retention = 5

[updates]
catalog_url = "https://smapi.io/api/v3.0/mods"
game_version = "1.6.15"
platform = "Android"
nexus_game_domain = "stardewvalley"

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/valley-sync/valley-sync.log)
# log_file = "/path/to/valley-sync.log"

# Also output logs to stderr (useful for debugging)
console_output = false
""".strip()


def _expand(path: str) -> str:
    return str(Path(path).expanduser())


def _parse_paths(data: dict, defaults: PathsConfig) -> PathsConfig:
    return PathsConfig(
        **{
            name: _expand(data.get(name, getattr(defaults, name)))
            for name in (
                "saves_dir",
                "mods_dir",
                "configs_dir",
                "backups_dir",
                "downloads_dir",
                "apk_dir",
                "logs_dir",
                "profiles_file",
                "sync_log_file",
            )
        }
    )


def _read_nexus_key() -> Optional[str]:
    """Read the Nexus API key from the environment or the credential file."""
    env_key = os.environ.get("NEXUS_API_KEY")
    if env_key:
        return env_key.strip()

    key_path = get_nexus_key_path()
    if key_path.exists():
        key = key_path.read_text(encoding="utf-8").strip()
        return key or None
    return None


def load_config() -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - NEXUS_API_KEY
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = get_config_path()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_default_config())
        print(f"Created default configuration at: {config_path}")
        config = Config()
        config.nexus_api_key = _read_nexus_key()
        return config

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        print(f"Error loading configuration from {config_path}: {e}")
        print("Using default configuration.")
        config = Config()
        config.nexus_api_key = _read_nexus_key()
        return config

    config = parse_config(toml_data)
    config.nexus_api_key = _read_nexus_key()
    return config


def parse_config(toml_data: dict) -> Config:
    """Build a Config from already-parsed TOML data.

    Sections that fail validation are replaced by their defaults.
    """
    config = Config()

    if "paths" in toml_data:
        config.paths = _parse_paths(toml_data["paths"], config.paths)

    if "device" in toml_data:
        device_data = toml_data["device"]
        defaults = config.device
        try:
            config.device = DeviceConfig(
                adb_path=device_data.get("adb_path", defaults.adb_path),
                package_name=device_data.get("package_name", defaults.package_name),
                app_data_root=device_data.get(
                    "app_data_root", defaults.app_data_root
                ).rstrip("/"),
                media_root_segments=list(
                    device_data.get("media_root_segments", defaults.media_root_segments)
                ),
                saves_folder=device_data.get("saves_folder", defaults.saves_folder),
                mods_folder=device_data.get("mods_folder", defaults.mods_folder),
                config_file_name=device_data.get(
                    "config_file_name", defaults.config_file_name
                ),
                internal_config=list(
                    device_data.get("internal_config", defaults.internal_config)
                ),
                error_log=list(device_data.get("error_log", defaults.error_log)),
                poll_interval_seconds=float(
                    device_data.get(
                        "poll_interval_seconds", defaults.poll_interval_seconds
                    )
                ),
                copy_timeout_seconds=float(
                    device_data.get("copy_timeout_seconds", defaults.copy_timeout_seconds)
                ),
                install_timeout_seconds=float(
                    device_data.get(
                        "install_timeout_seconds", defaults.install_timeout_seconds
                    )
                ),
                command_timeout_seconds=float(
                    device_data.get(
                        "command_timeout_seconds", defaults.command_timeout_seconds
                    )
                ),
            )
            config.device.validate()
        except (TypeError, ValueError) as e:
            print(f"Warning: Invalid device configuration: {e}")
            print("Using default device configuration.")
            config.device = DeviceConfig()

    if "sync" in toml_data:
        sync_data = toml_data["sync"]
        try:
            config.sync = SyncConfig(
                tolerance_seconds=int(
                    sync_data.get("tolerance_seconds", config.sync.tolerance_seconds)
                ),
                backup_retention=int(
                    sync_data.get("backup_retention", config.sync.backup_retention)
                ),
            )
            config.sync.validate()
        except (TypeError, ValueError) as e:
            print(f"Warning: Invalid sync configuration: {e}")
            print("Using default sync configuration.")
            config.sync = SyncConfig()

    if "updates" in toml_data:
        updates_data = toml_data["updates"]
        defaults = config.updates
        config.updates = UpdatesConfig(
            **{
                name: updates_data.get(name, getattr(defaults, name))
                for name in UpdatesConfig.__dataclass_fields__
            }
        )

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = _expand(log_file)
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
            console_output=logging_data.get(
                "console_output", config.logging.console_output
            ),
        )

    return config


def ensure_directories(config: Config) -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
    for directory in (
        config.paths.saves_dir,
        config.paths.mods_dir,
        config.paths.configs_dir,
        config.paths.backups_dir,
        config.paths.downloads_dir,
        config.paths.manual_downloads_dir,
        config.paths.apk_dir,
        config.paths.logs_dir,
    ):
        Path(directory).mkdir(parents=True, exist_ok=True)
