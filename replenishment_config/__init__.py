"""
replenishment_config -- YAML configuration for the replenishment engine.

Responsibility:
    Parses engine settings and the seed schedule set from YAML.  The
    packaged ``defaults/schedules.yaml`` carries the three standard
    schedules (daily critical items, weekly optimization, monthly
    seasonal planning).

Architecture position:
    Sits above ``replenishment_kernel``.  The kernel MUST NEVER import
    from ``replenishment_config``; the parsed objects are injected into
    kernel constructors (``ScheduleRegistry(seeds=..., settings=...)``).
"""

from replenishment_config.loader import (
    DEFAULT_CONFIG_PATH,
    EngineSettings,
    compute_checksum,
    load_engine_settings,
    load_seed_schedules,
    load_yaml_file,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "EngineSettings",
    "compute_checksum",
    "load_engine_settings",
    "load_seed_schedules",
    "load_yaml_file",
]
