"""Feature gates that switch optional behaviour on and off."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Mapping

SECURE_ACCESS = "SecureAccess"

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


class FeatureGateError(ValueError):
    """Raised for unknown features, bad values or conflicting specs."""


class PreRelease(str, enum.Enum):
    ALPHA = "ALPHA"
    BETA = "BETA"
    GA = ""
    DEPRECATED = "DEPRECATED"


@dataclass(frozen=True)
class FeatureSpec:
    default: bool
    pre_release: PreRelease = PreRelease.GA
    lock_to_default: bool = False


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f'parsing "{text}": invalid syntax')


class FeatureGate:
    """A set of known features together with their explicitly set values."""

    def __init__(self) -> None:
        self._known: dict[str, FeatureSpec] = {}
        self._enabled: dict[str, bool] = {}

    def add(self, features: Mapping[str, FeatureSpec]) -> None:
        """Register features; re-adding an identical spec is allowed."""
        known = dict(self._known)
        for name, spec in features.items():
            existing = known.get(name)
            if existing is not None:
                if existing == spec:
                    continue
                raise FeatureGateError(
                    f'feature gate "{name}" with different spec already exists: {existing}'
                )
            known[name] = spec
        self._known = known

    def enabled(self, key: str) -> bool:
        """Return whether ``key`` is on, falling back to its default."""
        if key in self._enabled:
            return self._enabled[key]
        spec = self._known.get(key)
        if spec is None:
            raise FeatureGateError(f"feature {key!r} is not registered in FeatureGate")
        return spec.default

    def set_from_map(self, values: Mapping[str, bool]) -> None:
        """Set several features at once; nothing changes if any value is rejected."""
        enabled = dict(self._enabled)
        for name, value in values.items():
            spec = self._known.get(name)
            if spec is None:
                raise FeatureGateError(f"unrecognized feature gate: {name}")
            if spec.lock_to_default and spec.default != value:
                raise FeatureGateError(
                    f"cannot set feature gate {name} to {str(bool(value)).lower()}, "
                    f"feature is locked to {str(spec.default).lower()}"
                )
            enabled[name] = bool(value)
        self._enabled = enabled

    def set(self, value: str) -> None:
        """Parse a ``name=bool,name=bool`` string and apply it."""
        parsed: dict[str, bool] = {}
        for segment in value.split(","):
            segment = segment.strip()
            if not segment:
                continue
            parts = segment.split("=")
            if len(parts) != 2:
                raise FeatureGateError(f"missing bool value for {segment}")
            key, raw = parts[0].strip(), parts[1].strip()
            try:
                parsed[key] = _parse_bool(raw)
            except ValueError as exc:
                raise FeatureGateError(f"invalid value of {key}={raw}, err: {exc}") from exc
        self.set_from_map(parsed)

    def known_features(self) -> list[str]:
        """Describe every non-GA, non-deprecated feature, sorted."""
        return sorted(
            f"{name}=true|false ({spec.pre_release.value} - "
            f"default={str(spec.default).lower()})"
            for name, spec in self._known.items()
            if spec.pre_release not in (PreRelease.GA, PreRelease.DEPRECATED)
        )

    def __str__(self) -> str:
        return ",".join(sorted(f"{k}={str(v).lower()}" for k, v in self._enabled.items()))


DEFAULT_FEATURES: dict[str, FeatureSpec] = {
    SECURE_ACCESS: FeatureSpec(default=False, pre_release=PreRelease.ALPHA),
}


def default_gates() -> FeatureGate:
    """Return a fresh gate holding every known feature at its default."""
    gate = FeatureGate()
    gate.add(DEFAULT_FEATURES)
    return gate