"""
Configuration Loader (``replenishment_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into typed kernel
objects: ``EngineSettings`` (retention limits, reporting window, default
month-end policy) and the seed ``ScheduleConfig`` set handed to the
``ScheduleRegistry`` constructor.

Architecture position
---------------------
**Config layer** -- sits above ``replenishment_kernel``.  The kernel never
imports from this package; callers pass the parsed objects in.

Invariants enforced
-------------------
* Every parsed object is a frozen, validated kernel dataclass.
* A seed without an explicit ``month_end_policy`` receives the engine
  default from the same file.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValidationError`` (or a subclass) from the kernel
  dataclasses; unknown schedule keys -> ``InvalidScheduleError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from replenishment_kernel.domain.schedule import (
    MonthEndPolicy,
    ScheduleConfig,
    schedule_from_dict,
)
from replenishment_kernel.exceptions import ValidationError
from replenishment_kernel.logging_config import get_logger
from replenishment_kernel.services.schedule_registry import RegistrySettings

logger = get_logger("config.loader")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "schedules.yaml"


@dataclass(frozen=True)
class EngineSettings:
    """Engine-wide settings parsed from the ``engine:`` section."""

    registry: RegistrySettings = field(default_factory=RegistrySettings)
    default_month_end_policy: MonthEndPolicy = MonthEndPolicy.CLAMP
    checksum: str = ""


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValidationError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValidationError(f"{path}: top-level YAML must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_engine_settings(data: dict[str, Any]) -> EngineSettings:
    engine = data.get("engine") or {}
    defaults = RegistrySettings()
    try:
        policy = MonthEndPolicy(engine.get("default_month_end_policy", MonthEndPolicy.CLAMP))
    except ValueError as exc:
        raise ValidationError(
            f"engine.default_month_end_policy: {engine.get('default_month_end_policy')!r} "
            f"is not one of {[p.value for p in MonthEndPolicy]}"
        ) from exc
    return EngineSettings(
        registry=RegistrySettings(
            execution_log_retention=int(
                engine.get("execution_log_retention", defaults.execution_log_retention)
            ),
            outcome_retention=int(engine.get("outcome_retention", defaults.outcome_retention)),
            report_window_days=int(
                engine.get("accuracy_window_days", defaults.report_window_days)
            ),
        ),
        default_month_end_policy=policy,
        checksum=compute_checksum(data),
    )


def parse_schedules(
    data: dict[str, Any],
    default_month_end_policy: MonthEndPolicy = MonthEndPolicy.CLAMP,
) -> tuple[ScheduleConfig, ...]:
    schedules = []
    seen: set[str] = set()
    for entry in data.get("schedules") or ():
        entry = dict(entry)
        entry.setdefault("month_end_policy", default_month_end_policy)
        schedule = schedule_from_dict(entry)
        if schedule.schedule_id in seen:
            raise ValidationError(f"duplicate schedule_id {schedule.schedule_id!r} in config")
        seen.add(schedule.schedule_id)
        schedules.append(schedule)
    return tuple(schedules)


def load_engine_settings(path: Path | None = None) -> EngineSettings:
    """Load ``EngineSettings`` from ``path`` (default: the packaged defaults)."""
    source = path or DEFAULT_CONFIG_PATH
    settings = parse_engine_settings(load_yaml_file(source))
    logger.info(
        "engine_settings_loaded",
        extra={
            "path": str(source),
            "checksum": settings.checksum,
            "execution_log_retention": settings.registry.execution_log_retention,
            "outcome_retention": settings.registry.outcome_retention,
        },
    )
    return settings


def load_seed_schedules(path: Path | None = None) -> tuple[ScheduleConfig, ...]:
    """Load the seed schedule set from ``path`` (default: the packaged defaults)."""
    source = path or DEFAULT_CONFIG_PATH
    data = load_yaml_file(source)
    settings = parse_engine_settings(data)
    schedules = parse_schedules(data, settings.default_month_end_policy)
    logger.info(
        "seed_schedules_loaded",
        extra={
            "path": str(source),
            "schedule_count": len(schedules),
            "schedule_ids": [s.schedule_id for s in schedules],
        },
    )
    return schedules
