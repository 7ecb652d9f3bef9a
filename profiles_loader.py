# profiles_loader.py
"""
Load YAML monitor profiles (thresholds, cadence) and provide deterministic profile hashing.
"""
from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass
from typing import Dict, Any

import yaml

from detection_engine import MonitorLimits

DEFAULT_INTERVAL_S = 5.0


@dataclass(frozen=True)
class Profile:
    profile_id: str
    raw: Dict[str, Any]
    policy_hash: str
    limits: MonitorLimits
    interval_s: float


def _canonical_json(obj: Dict[str, Any]) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"))


def _limits_from(raw: Dict[str, Any], name: str) -> MonitorLimits:
    section = raw.get("limits") or {}
    if not isinstance(section, dict):
        raise ValueError(f"{name}: 'limits' must be a mapping")
    defaults = MonitorLimits()
    try:
        return MonitorLimits(
            bandwidth_kb=section.get("bandwidth_kb", defaults.bandwidth_kb),
            num_cycles=section.get("num_cycles", defaults.num_cycles),
            ban_time_s=section.get("ban_time_s", defaults.ban_time_s),
        )
    except ValueError as e:
        raise ValueError(f"{name}: {e}") from e


def _interval_from(raw: Dict[str, Any], name: str) -> float:
    interval = (raw.get("monitor") or {}).get("interval_s", DEFAULT_INTERVAL_S)
    try:
        interval = float(interval)
    except (TypeError, ValueError):
        raise ValueError(f"{name}: monitor.interval_s must be a number, got {interval!r}")
    if interval <= 0:
        raise ValueError(f"{name}: monitor.interval_s must be positive")
    return interval


def load_profile(path: str) -> Profile:
    name = os.path.basename(path)
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{name}: profile must be a mapping")
    profile_id = str(raw.get("profile_id") or os.path.splitext(name)[0])
    policy_hash = hashlib.sha256(_canonical_json(raw).encode("utf-8")).hexdigest()
    return Profile(
        profile_id=profile_id,
        raw=raw,
        policy_hash=policy_hash,
        limits=_limits_from(raw, name),
        interval_s=_interval_from(raw, name),
    )


def load_profiles(profiles_dir: str) -> Dict[str, Profile]:
    profiles: Dict[str, Profile] = {}
    if not os.path.isdir(profiles_dir):
        raise FileNotFoundError(f"profiles directory not found: {profiles_dir}")

    for name in sorted(os.listdir(profiles_dir)):
        if not name.endswith((".yaml", ".yml")):
            continue
        profile = load_profile(os.path.join(profiles_dir, name))
        profiles[profile.profile_id] = profile

    if not profiles:
        raise ValueError("no profiles loaded")
    return profiles
