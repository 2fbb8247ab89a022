"""
WPPA settings (shared configuration schema).

This module defines the configuration dataclass used by:
- the runtime (per-request wiring)
- the reporter (sampling / persistence policy)
- the CLI (reporting over the persisted sample log)

Settings are immutable and passed explicitly; nothing here is global.
"""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class WPPASettings:
    """
    High-level analyser settings.

    Notes:
    - `sample_rate` is the percentage of requests persisted (0..100).
    - `enable_query_tracking` mirrors SAVEQUERIES: per-query timing is only
      collected when it is on.
    - `enable_hook_profiling` turns on the (expensive) per-hook profiler.
    - `plugins_dir`, `themes_dir` and `core_dir` are the roots used to
      attribute callbacks and queries to an owning component.
    """

    enable_tracking: bool = True
    sample_rate: int = 100
    data_retention_days: int = 30
    enable_query_tracking: bool = False
    enable_hook_profiling: bool = False
    top_n_components: int = 5
    num_slow_queries: int = 20
    plugins_dir: str = "wp-content/plugins"
    themes_dir: str = "wp-content/themes"
    core_dir: str = "."
    reserved_hook_prefix: str = "wppa_"
    logs_dir: str = "./logs"
    enable_logging: bool = False
    data_dir: str = ""

    def __post_init__(self):
        if not 0 <= self.sample_rate <= 100:
            raise ValueError(f"sample_rate must be in [0, 100], got {self.sample_rate}")
        if self.data_retention_days < 1:
            raise ValueError(
                f"data_retention_days must be >= 1, got {self.data_retention_days}"
            )
        if self.top_n_components < 0:
            raise ValueError(
                f"top_n_components must be >= 0, got {self.top_n_components}"
            )


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def read_wppa_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Read analyser configuration from WPPA_* environment variables.

    Only variables that are present are returned, so dataclass defaults
    apply to everything else.
    """
    env = os.environ if environ is None else environ
    parsers = {
        "WPPA_ENABLE_TRACKING": ("enable_tracking", _flag),
        "WPPA_SAMPLE_RATE": ("sample_rate", int),
        "WPPA_DATA_RETENTION": ("data_retention_days", int),
        "WPPA_SAVEQUERIES": ("enable_query_tracking", _flag),
        "WPPA_HOOK_PROFILING": ("enable_hook_profiling", _flag),
        "WPPA_TOP_N_COMPONENTS": ("top_n_components", int),
        "WPPA_NUM_SLOW_QUERIES": ("num_slow_queries", int),
        "WPPA_PLUGINS_DIR": ("plugins_dir", str),
        "WPPA_THEMES_DIR": ("themes_dir", str),
        "WPPA_CORE_DIR": ("core_dir", str),
        "WPPA_RESERVED_HOOK_PREFIX": ("reserved_hook_prefix", str),
        "WPPA_LOGS_DIR": ("logs_dir", str),
        "WPPA_ENABLE_LOGGING": ("enable_logging", _flag),
        "WPPA_DATA_DIR": ("data_dir", str),
    }

    out: Dict[str, Any] = {}
    for var, (key, parse) in parsers.items():
        if var in env:
            try:
                out[key] = parse(env[var])
            except ValueError as e:
                raise ValueError(f"Invalid value for {var}: {env[var]!r}") from e
    return out


def load_settings(
    environ: Optional[Mapping[str, str]] = None, **overrides: Any
) -> WPPASettings:
    """
    Build validated settings from the environment plus explicit overrides.
    """
    known = {f.name for f in fields(WPPASettings)}
    unknown = set(overrides) - known
    if unknown:
        raise ValueError(f"Unknown settings: {sorted(unknown)}")

    values = read_wppa_env(environ)
    values.update(overrides)
    return WPPASettings(**values)
