"""Bot configuration: defaults, config file, environment and CLI overrides.

Sources are merged in a fixed order (later wins) into one validated
:class:`PolicyConfig`; the engine only ever sees the merged result.
"""

import os
from pathlib import Path
from typing import Any, Mapping

import json5
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigError
from .logging import get_logger
from .models import UpdatePolicy, UpdateRule

log = get_logger("config")

DEFAULT_CONFIG_FILE_NAME = ".nuget-update-bot.json"
ENV_PREFIX = "NUGET_BOT_"

MIN_PARALLELISM = 1
MAX_PARALLELISM = 16

SAMPLE_CONFIG = """{
  // Default update policy: Patch, Minor, or Major
  "updatePolicy": "Minor",

  // Package patterns to exclude from updates (supports wildcards)
  "excludePackages": [
    "System.*",
    "Microsoft.NETCore.App"
  ],

  // Include pre-release versions
  "includePrerelease": false,

  // Maximum number of parallel NuGet API calls (1-16)
  "maxParallelism": 5,

  // Package-specific update rules, first match wins
  "updateRules": [
    {
      "pattern": "Microsoft.*",
      "policy": "Minor"
    },
    {
      "pattern": "Newtonsoft.Json",
      "policy": "Patch"
    }
  ]
}
"""


def _to_camel(name: str) -> str:
    first, *rest = name.split("_")
    return first + "".join(part.title() for part in rest)


class PolicyConfig(BaseModel):
    """Resolved policy consumed by the update engine."""

    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    update_policy: UpdatePolicy = UpdatePolicy.MINOR
    exclude_packages: list[str] = Field(default_factory=list)
    include_prerelease: bool = False
    max_parallelism: int = Field(default=5, ge=MIN_PARALLELISM, le=MAX_PARALLELISM)
    update_rules: list[UpdateRule] = Field(default_factory=list)

    @field_validator("update_policy", mode="before")
    @classmethod
    def _normalize_policy(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("exclude_packages", mode="before")
    @classmethod
    def _normalize_excludes(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [p.strip() for p in value if isinstance(p, str) and p.strip()]

    @field_validator("update_rules", mode="before")
    @classmethod
    def _normalize_rules(cls, value: Any) -> Any:
        if value is None:
            return []
        rules = []
        for rule in value:
            if isinstance(rule, Mapping):
                rule = {k.lower(): v for k, v in rule.items()}
                if isinstance(rule.get("policy"), str):
                    rule["policy"] = rule["policy"].strip().lower()
            rules.append(rule)
        return rules


def find_config_file(start: Path | None = None) -> Path | None:
    """Search the start directory and its parents for the default config file."""
    directory = (start or Path.cwd()).resolve()
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / DEFAULT_CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def load_config_file(path: Path | str) -> dict[str, Any]:
    """Read a JSON config file into a partial settings mapping.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        data = json5.loads(path.read_text(encoding="utf-8-sig"))
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    except ValueError as e:
        raise ConfigError(f"Failed to parse configuration file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {path} must contain a JSON object")

    fields = {name: name for name in PolicyConfig.model_fields}
    fields.update({_to_camel(name).lower(): name for name in PolicyConfig.model_fields})
    settings = {}
    for key, value in data.items():
        name = fields.get(key.lower())
        if name is None:
            log.warning("unknown_config_key", key=key, path=str(path))
            continue
        settings[name] = value
    return settings


def load_env_config(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Read partial settings from ``NUGET_BOT_*`` environment variables.

    Raises:
        ConfigError: If a variable holds an invalid value.
    """
    environ = os.environ if environ is None else environ
    settings: dict[str, Any] = {}

    policy = environ.get(f"{ENV_PREFIX}UPDATE_POLICY")
    if policy:
        try:
            settings["update_policy"] = UpdatePolicy(policy)
        except ValueError as e:
            raise ConfigError(
                f"Invalid {ENV_PREFIX}UPDATE_POLICY '{policy}'. Expected Patch, Minor or Major"
            ) from e

    prerelease = environ.get(f"{ENV_PREFIX}INCLUDE_PRERELEASE")
    if prerelease:
        settings["include_prerelease"] = prerelease.strip().lower() in ("1", "true", "yes", "on")

    parallelism = environ.get(f"{ENV_PREFIX}MAX_PARALLELISM")
    if parallelism:
        try:
            settings["max_parallelism"] = int(parallelism)
        except ValueError as e:
            raise ConfigError(
                f"Invalid {ENV_PREFIX}MAX_PARALLELISM '{parallelism}'. Expected an integer"
            ) from e

    excludes = environ.get(f"{ENV_PREFIX}EXCLUDE_PACKAGES")
    if excludes:
        settings["exclude_packages"] = [p.strip() for p in excludes.split(",") if p.strip()]

    return settings


def merge_config(*layers: Mapping[str, Any] | None) -> PolicyConfig:
    """Merge partial settings, later layers overriding earlier ones.

    ``None`` values inside a layer mean "not set" and never override.

    Raises:
        ConfigError: If the merged settings are invalid.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        if not layer:
            continue
        merged.update({k: v for k, v in layer.items() if v is not None})

    try:
        return PolicyConfig.model_validate(merged)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def resolve_config(
    config_path: Path | str | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    search_from: Path | None = None,
) -> PolicyConfig:
    """Build the effective config: defaults < file < environment < overrides."""
    if config_path is not None:
        path = Path(config_path)
        if not path.is_file():
            raise ConfigError(f"Configuration file not found: {path}")
    else:
        path = find_config_file(search_from)

    file_settings = load_config_file(path) if path else {}
    if path:
        log.debug("config_file_loaded", path=str(path))

    return merge_config(file_settings, load_env_config(environ), overrides)


def write_sample_config(path: Path | str) -> Path:
    """Write a commented sample configuration file."""
    path = Path(path)
    path.write_text(SAMPLE_CONFIG, encoding="utf-8")
    return path
