"""Factory helpers for constructing the client store from configuration."""
from __future__ import annotations

import importlib
from typing import Any, Dict, Mapping, Optional

from .config import ConfigurationError, store_config
from .rate_limit import DelayPolicy, RateLimitedStore, RateLimiter


def _load_class(path: str):
    module_name, _, attr = path.rpartition(".")
    if not module_name:
        raise ConfigurationError(f"Invalid store class path '{path}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Store module '{module_name}' could not be imported") from exc
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigurationError(f"Module '{module_name}' does not define '{attr}'") from exc


def build_store(
    config: Optional[Mapping[str, Any]],
    *,
    overrides: Optional[Dict[str, Any]] = None,
) -> RateLimitedStore:
    """Instantiate the store defined in the configuration file.

    ``overrides`` replace entries of the store's ``options`` (the CLI uses it
    for ``--store``).
    """

    section = store_config(config)
    options = dict(section.get("options") or {})
    options.update(overrides or {})

    store_cls = _load_class(section["class"])
    try:
        store = store_cls(**options)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid options for store '{section['class']}': {exc}") from exc

    delay_seconds = float(section.get("delay_seconds", 0) or 0)
    calls_per_minute = section.get("rate_limit_per_minute")
    rate_limiter = RateLimiter(float(calls_per_minute)) if calls_per_minute else RateLimiter(None)

    return RateLimitedStore(
        store,
        delay_policy=DelayPolicy(delay_seconds=delay_seconds),
        rate_limiter=rate_limiter,
    )
