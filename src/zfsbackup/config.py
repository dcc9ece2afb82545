"""Configuration loading and validation for zfs-backup."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jsonschema
import yaml

from zfsbackup.models import ConfigError, LogLevel

__all__ = [
    "Configuration",
    "ConfigurationError",
]


@dataclass(frozen=True)
class Configuration:
    """Parsed and validated configuration.

    Every field has a default so the tool works without a configuration file.
    """

    source_pool: str = "NIXROOT"
    source_dataset: str = "NIXROOT/home"
    backup_pool: str = "NIXBACKUPS"
    backup_dataset: str = "NIXBACKUPS/home"
    snapshot_suffix: str = "Home"
    keep_local_snapshots: int = 7
    keep_backup_months: int = 3
    require_root: bool = False
    log_file_level: LogLevel = LogLevel.FULL
    log_cli_level: LogLevel = LogLevel.INFO

    @classmethod
    def from_yaml(cls, path: Path) -> Configuration:
        """Load and validate configuration from YAML file.

        Args:
            path: Path to config.yaml

        Returns:
            Validated Configuration instance

        Raises:
            ConfigurationError: If the file is missing, the YAML is invalid or
                schema validation fails
        """
        errors: list[ConfigError] = []

        try:
            with path.open() as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            errors.append(ConfigError(path=str(path), message=f"Configuration file not found: {path}"))
            raise ConfigurationError(errors) from None
        except yaml.YAMLError as e:
            error_msg = str(e)
            # problem_mark exists on MarkedYAMLError
            if hasattr(e, "problem_mark") and hasattr(e, "problem"):
                mark = e.problem_mark  # type: ignore[attr-defined]
                problem = e.problem  # type: ignore[attr-defined]
                if mark is not None and problem is not None:
                    error_msg = f"YAML syntax error at line {mark.line + 1}, column {mark.column + 1}: {problem}"
            errors.append(ConfigError(path=str(path), message=error_msg))
            raise ConfigurationError(errors) from e

        if data is None:
            data = {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Configuration:
        """Validate a parsed mapping against the schema and build a Configuration.

        Raises:
            ConfigurationError: If schema validation fails
        """
        errors: list[ConfigError] = []

        validator = jsonschema.Draft7Validator(_load_schema())
        for error in validator.iter_errors(data):
            path_parts = list(error.absolute_path)
            path_str = ".".join(str(p) for p in path_parts) if path_parts else "root"
            errors.append(ConfigError(path=path_str, message=error.message))

        if errors:
            raise ConfigurationError(errors)

        defaults = cls()
        source_pool = data.get("source_pool", defaults.source_pool)
        source_dataset = data.get("source_dataset", f"{source_pool}/home")
        backup_pool = data.get("backup_pool", defaults.backup_pool)
        backup_dataset = data.get("backup_dataset", f"{backup_pool}/home")

        for key, dataset, pool in (
            ("source_dataset", source_dataset, source_pool),
            ("backup_dataset", backup_dataset, backup_pool),
        ):
            if not dataset.startswith(pool + "/"):
                errors.append(ConfigError(path=key, message=f"{dataset} is not a dataset of pool {pool}"))

        if errors:
            raise ConfigurationError(errors)

        return cls(
            source_pool=source_pool,
            source_dataset=source_dataset,
            backup_pool=backup_pool,
            backup_dataset=backup_dataset,
            snapshot_suffix=data.get("snapshot_suffix", defaults.snapshot_suffix),
            keep_local_snapshots=data.get("keep_local_snapshots", defaults.keep_local_snapshots),
            keep_backup_months=data.get("keep_backup_months", defaults.keep_backup_months),
            require_root=data.get("require_root", defaults.require_root),
            log_file_level=LogLevel[data.get("log_file_level", defaults.log_file_level.name)],
            log_cli_level=LogLevel[data.get("log_cli_level", defaults.log_cli_level.name)],
        )

    @classmethod
    def load(cls, path: Path | None = None) -> Configuration:
        """Load configuration from an explicit path, or the default path if present.

        A missing default file yields the built-in defaults; a missing explicit
        path is an error.
        """
        if path is not None:
            return cls.from_yaml(path)
        default_path = cls.get_default_config_path()
        if default_path.exists():
            return cls.from_yaml(default_path)
        return cls()

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Get the default config file path."""
        return Path.home() / ".config" / "zfs-backup" / "config.yaml"


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    def __init__(self, errors: list[ConfigError]) -> None:
        self.errors = errors
        messages = [f"{e.path}: {e.message}" for e in errors]
        super().__init__("Configuration validation failed:\n" + "\n".join(messages))


def _load_schema() -> dict[str, Any]:
    """Load the config schema from package resources."""
    schema_path = Path(__file__).parent / "schemas" / "config-schema.yaml"
    with schema_path.open() as f:
        return yaml.safe_load(f)
