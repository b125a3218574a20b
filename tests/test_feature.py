import pytest

from byohost.feature import (
    SECURE_ACCESS,
    FeatureGate,
    FeatureGateError,
    FeatureSpec,
    PreRelease,
    default_gates,
)


def test_secure_access_defaults_to_off():
    assert default_gates().enabled(SECURE_ACCESS) is False


def test_known_features_lists_secure_access():
    assert default_gates().known_features() == [
        "SecureAccess=true|false (ALPHA - default=false)"
    ]


def test_set_enables_feature():
    gates = default_gates()
    gates.set("SecureAccess=true")
    assert gates.enabled(SECURE_ACCESS) is True
    assert str(gates) == "SecureAccess=true"


@pytest.mark.parametrize("raw,expected", [("1", True), ("T", True), ("False", False), ("0", False)])
def test_set_accepts_bool_spellings(raw, expected):
    gates = default_gates()
    gates.set(f" {SECURE_ACCESS} = {raw} ")
    assert gates.enabled(SECURE_ACCESS) is expected


def test_set_unknown_feature_raises():
    with pytest.raises(FeatureGateError, match="unrecognized feature gate: Unknown"):
        default_gates().set("Unknown=true")


def test_set_missing_value_raises():
    with pytest.raises(FeatureGateError, match="missing bool value"):
        default_gates().set(SECURE_ACCESS)


def test_set_bad_bool_raises():
    with pytest.raises(FeatureGateError, match="invalid value of"):
        default_gates().set("SecureAccess=maybe")


def test_set_from_map_is_atomic():
    gates = default_gates()
    with pytest.raises(FeatureGateError):
        gates.set_from_map({SECURE_ACCESS: True, "Other": True})
    assert gates.enabled(SECURE_ACCESS) is False


def test_enabled_unknown_raises():
    with pytest.raises(FeatureGateError):
        default_gates().enabled("Missing")


def test_add_same_spec_twice_is_allowed():
    gates = default_gates()
    gates.add({SECURE_ACCESS: FeatureSpec(default=False, pre_release=PreRelease.ALPHA)})
    assert gates.enabled(SECURE_ACCESS) is False


def test_add_conflicting_spec_raises():
    gates = default_gates()
    with pytest.raises(FeatureGateError, match="different spec"):
        gates.add({SECURE_ACCESS: FeatureSpec(default=True, pre_release=PreRelease.BETA)})


def test_locked_feature_cannot_change():
    gates = FeatureGate()
    gates.add({"Locked": FeatureSpec(default=True, lock_to_default=True)})
    with pytest.raises(FeatureGateError, match="locked"):
        gates.set_from_map({"Locked": False})
    gates.set_from_map({"Locked": True})
    assert gates.enabled("Locked") is True


def test_ga_and_deprecated_are_not_listed():
    gates = FeatureGate()
    gates.add(
        {
            "Stable": FeatureSpec(default=True, pre_release=PreRelease.GA),
            "Old": FeatureSpec(default=False, pre_release=PreRelease.DEPRECATED),
            "Next": FeatureSpec(default=True, pre_release=PreRelease.BETA),
        }
    )
    listed = gates.known_features()
    assert len(listed) == 1
    assert listed[0].startswith("Next=")