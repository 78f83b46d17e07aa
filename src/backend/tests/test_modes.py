"""Tests for mode resolution and budget validation."""
import pytest

from tracks.shared.modes import (
    MODES,
    get_domain_profile,
    resolve_config,
    validate_config,
)


@pytest.mark.parametrize(
    "mode, target, iterations, calls, self_refine",
    [
        ("fast", 7.0, 1, 2, False),
        ("balanced", 8.5, 3, 5, True),
        ("thorough", 9.0, 5, 10, True),
        ("research", 9.5, 7, 15, True),
    ],
)
def test_mode_defaults(mode, target, iterations, calls, self_refine):
    config = resolve_config(mode)
    assert config.target_quality == target
    assert config.max_iterations == iterations
    assert config.max_oracle_calls == calls
    assert config.enable_self_refine is self_refine
    assert validate_config(config) == []


def test_overrides_replace_fields():
    config = resolve_config("balanced", {"max_oracle_calls": 8, "target_quality": 9.2})
    assert config.max_oracle_calls == 8
    assert config.target_quality == 9.2
    assert config.max_iterations == 3


def test_feature_overrides_merge_per_key():
    config = resolve_config("balanced", {"features": {"dynamic_analysis": False}})
    assert config.feature("dynamic_analysis") is False
    assert config.feature("self_critique") is True
    # The registry entry is untouched
    assert MODES["balanced"].feature("dynamic_analysis") is True


def test_unknown_mode_rejected():
    with pytest.raises(ValueError, match="Unknown mode"):
        resolve_config("turbo")


def test_unknown_override_field_rejected():
    with pytest.raises(ValueError, match="Unknown configuration fields"):
        resolve_config("fast", {"max_tokens": 10})


@pytest.mark.parametrize("features", [["dynamic_analysis"], True, "all"])
def test_feature_override_must_be_a_mapping(features):
    with pytest.raises(ValueError, match="features must be a mapping"):
        resolve_config("balanced", {"features": features})


def test_feature_override_values_must_be_bool():
    with pytest.raises(ValueError, match=r"true or false: \['dynamic_analysis'\]"):
        resolve_config("balanced", {"features": {"dynamic_analysis": 1, "caching": True}})


def test_validate_config_reports_each_violation():
    errors = validate_config({"target_quality": 11, "max_iterations": 0, "max_oracle_calls": 51})
    assert len(errors) == 3
    assert "target_quality must be between 0 and 10" in errors


def test_validate_config_checks_only_present_fields():
    assert validate_config({"max_iterations": 4}) == []
    assert validate_config({"max_oracle_calls": "many"}) == ["max_oracle_calls must be between 1 and 50"]


def test_domain_profiles():
    assert "SOLID" in get_domain_profile("Technical").frameworks
    assert get_domain_profile("general") is None
    assert get_domain_profile(None) is None
