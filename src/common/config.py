# ABOUTME: Holds the policy thresholds used by the validators and the detector.
# ABOUTME: Loads overrides from a YAML rules file grouped by subject type.

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml


@dataclass(frozen=True)
class CompletionRules:
    """Thresholds for completion decisions and suspicious-activity rules."""

    pdf_min_duration_minutes: int = 5
    video_min_watched_ratio: float = 0.80
    video_max_pause_count: int = 3  # exclusive upper bound
    video_max_playback_speed: float = 1.5
    # Used when a video's metadata row exists but carries no duration.
    default_video_duration_seconds: float = 600.0
    playback_speed_threshold: float = 1.5
    time_gap_threshold_seconds: float = 600.0


DEFAULT_RULES = CompletionRules()

# YAML section -> {yaml key: dataclass field}
_SECTIONS: Dict[str, Dict[str, str]] = {
    "pdf": {
        "min_duration_minutes": "pdf_min_duration_minutes",
    },
    "video": {
        "min_watched_ratio": "video_min_watched_ratio",
        "max_pause_count": "video_max_pause_count",
        "max_playback_speed": "video_max_playback_speed",
        "default_duration_seconds": "default_video_duration_seconds",
    },
    "detector": {
        "playback_speed_threshold": "playback_speed_threshold",
        "time_gap_threshold_seconds": "time_gap_threshold_seconds",
    },
}


def rules_from_mapping(cfg: Optional[Mapping[str, Any]], base: CompletionRules = DEFAULT_RULES) -> CompletionRules:
    """
    Apply a nested {section: {key: value}} mapping on top of ``base``.

    Missing sections and keys keep the base values; unknown ones raise ValueError.
    """

    if not cfg:
        return base

    field_types = {f.name: f.type for f in fields(CompletionRules)}
    overrides: Dict[str, Any] = {}
    for section, values in cfg.items():
        if section not in _SECTIONS:
            raise ValueError(f"Unknown rules section '{section}'. Expected one of: {', '.join(_SECTIONS)}.")
        for key, value in (values or {}).items():
            target = _SECTIONS[section].get(key)
            if target is None:
                raise ValueError(f"Unknown key '{key}' in rules section '{section}'.")
            overrides[target] = int(value) if field_types[target] == "int" else float(value)
    return replace(base, **overrides)


def load_rules(path: Union[str, Path, None]) -> CompletionRules:
    """Read a rules YAML file; ``None`` returns the defaults."""

    if path is None:
        return DEFAULT_RULES
    with open(path) as f:
        cfg = yaml.safe_load(f)
    return rules_from_mapping(cfg)
