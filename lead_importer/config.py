"""Configuration helpers for the client import pipeline."""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .models import ProspectHandlingPolicy

LOGGER = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when configuration files are missing or malformed."""


_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}

DEFAULT_STORE_CLASS = "lead_importer.store.JsonClientStore"


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
            data = json.loads(text or "{}")
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Configuration file '{file_path}' could not be parsed: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{file_path}' must contain a mapping at the top level")
    return data


def _positive(section: Mapping[str, Any], key: str, default: Any, kind: type) -> Any:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigurationError(f"'import.{key}' must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"'import.{key}' must be a number, got {value!r}") from exc
    if not math.isfinite(number) or number <= 0:
        raise ConfigurationError(f"'import.{key}' must be positive, got {value!r}")
    if kind is int:
        if not number.is_integer():
            raise ConfigurationError(f"'import.{key}' must be a whole number, got {value!r}")
        return int(number)
    return number


def _flag(section: Mapping[str, Any], key: str, default: bool) -> bool:
    value = section.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigurationError(f"'import.{key}' must be true or false, got {value!r}")
    return value


@dataclass(frozen=True)
class ImportSettings:
    """Knobs for one import run.

    ``max_concurrency`` bounds simultaneous store calls; ``call_timeout`` is
    how long a single upsert may take before it is reported as failed.
    """

    max_concurrency: int = 3
    call_timeout: float = 30.0
    prospect_policy: ProspectHandlingPolicy = ProspectHandlingPolicy.NULL_ON_PROSPECT
    raise_on_error: bool = False

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> "ImportSettings":
        section = (config or {}).get("import") or {}
        if not isinstance(section, Mapping):
            raise ConfigurationError("'import' section must be a mapping")

        policy_name = section.get("prospect_policy", cls.prospect_policy.value)
        try:
            policy = ProspectHandlingPolicy(str(policy_name).strip().lower())
        except ValueError as exc:
            choices = ", ".join(member.value for member in ProspectHandlingPolicy)
            raise ConfigurationError(
                f"Unknown prospect_policy '{policy_name}'. Expected one of: {choices}"
            ) from exc

        return cls(
            max_concurrency=_positive(section, "max_concurrency", cls.max_concurrency, int),
            call_timeout=_positive(section, "call_timeout", cls.call_timeout, float),
            prospect_policy=policy,
            raise_on_error=_flag(section, "raise_on_error", cls.raise_on_error),
        )


def store_config(config: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Return the ``store`` section, filled in with the JSON store default."""

    section = dict((config or {}).get("store") or {})
    if not section.get("class"):
        LOGGER.debug("No store class configured, using %s", DEFAULT_STORE_CLASS)
        section["class"] = DEFAULT_STORE_CLASS
    section.setdefault("options", {})
    return section
