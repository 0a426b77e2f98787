# ABOUTME: Tests completion rule defaults and YAML overrides.
# ABOUTME: Ensures unknown sections and keys are reported instead of ignored.

from pathlib import Path

import pytest

from src.common.config import DEFAULT_RULES, CompletionRules, load_rules, rules_from_mapping

REPO_ROOT = Path(__file__).resolve().parents[1]


def test_defaults_match_policy():
    rules = CompletionRules()
    assert rules.pdf_min_duration_minutes == 5
    assert rules.video_min_watched_ratio == 0.8
    assert rules.video_max_pause_count == 3
    assert rules.video_max_playback_speed == 1.5
    assert rules.default_video_duration_seconds == 600
    assert rules.playback_speed_threshold == 1.5
    assert rules.time_gap_threshold_seconds == 600


def test_load_rules_none_returns_defaults():
    assert load_rules(None) == DEFAULT_RULES


def test_shipped_rules_file_matches_defaults():
    assert load_rules(REPO_ROOT / "configs" / "completion_rules.yaml") == DEFAULT_RULES


def test_yaml_overrides_are_applied(tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text(
        "video:\n  max_pause_count: 5\n  default_duration_seconds: 900\ndetector:\n  time_gap_threshold_seconds: 120\n",
        encoding="utf-8",
    )
    rules = load_rules(path)

    assert rules.video_max_pause_count == 5
    assert isinstance(rules.video_max_pause_count, int)
    assert rules.default_video_duration_seconds == 900.0
    assert rules.time_gap_threshold_seconds == 120.0
    assert rules.pdf_min_duration_minutes == 5


def test_empty_yaml_keeps_defaults(tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text("", encoding="utf-8")
    assert load_rules(path) == DEFAULT_RULES


def test_unknown_section_raises():
    with pytest.raises(ValueError, match="Unknown rules section"):
        rules_from_mapping({"audio": {"max": 1}})


def test_unknown_key_raises():
    with pytest.raises(ValueError, match="Unknown key"):
        rules_from_mapping({"pdf": {"max_pages": 3}})


def test_package_readme_is_shipped():
    lines = (REPO_ROOT / "pyproject.toml").read_text(encoding="utf-8").splitlines()
    readme = next(line.split("=", 1)[1].strip().strip('"') for line in lines if line.startswith("readme"))

    assert readme == "README.md"
    assert (REPO_ROOT / readme).is_file()
