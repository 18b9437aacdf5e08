"""Configuration system for hosttop."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from hosttop.source import SOURCES

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class MonitorConfig:
    """Refresh loop and counter source configuration."""

    poll_rate: float = 2.0  # Seconds between refreshes
    source: str = "procfs"  # "procfs" or "psutil"
    proc_root: str = "/proc"
    etc_root: str = "/etc"
    max_processes: int = 0  # Rows shown in the process table, 0 for all

    def __post_init__(self) -> None:
        if self.source not in SOURCES:
            raise ValueError(f"Unknown source: {self.source!r}. Valid sources: {list(SOURCES)}")
        if self.poll_rate <= 0:
            raise ValueError(f"poll_rate must be positive, got {self.poll_rate}")


@dataclass
class LoggingConfig:
    """Log output configuration."""

    level: str = "WARNING"
    file: str = ""  # Empty logs to stderr only
    json: bool = False  # JSON Lines instead of console rendering

    def __post_init__(self) -> None:
        self.level = self.level.upper()
        if self.level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.level!r}. Valid levels: {list(LOG_LEVELS)}")


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


def _load_section(cls: type, data: dict) -> object:
    """Build a config section from TOML data, using dataclass defaults for missing fields."""
    defaults = cls()
    kwargs = {}
    for f in fields(cls):
        value = data.get(f.name, getattr(defaults, f.name))
        # tomlkit items wrap plain values
        kwargs[f.name] = value.unwrap() if hasattr(value, "unwrap") else value
    return cls(**kwargs)


@dataclass
class Config:
    """Main configuration container."""

    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "hosttop"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("monitor", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Raises:
            ValueError: The file is not valid TOML or holds invalid values.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            monitor=_load_section(MonitorConfig, data.get("monitor", {})),
            logging=_load_section(LoggingConfig, data.get("logging", {})),
        )
