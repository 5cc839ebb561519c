"""Tests for configuration validation."""

from __future__ import annotations

from nocturne_installer.config.validation import validate_config


class TestValidateConfig:
    """Tests for validate_config."""

    def test_valid_config(self) -> None:
        data = {
            "cdn_base": "https://mirror.example.com",
            "bin_dir": "~/bin",
            "name": "miner",
            "tiering": False,
            "retry_attempts": 5,
            "retry_delay": 0.5,
            "probe_attempts": 1,
            "timeout": 10,
        }
        assert validate_config(data, source="config.yml") == []

    def test_unknown_key_with_suggestion(self) -> None:
        warnings = validate_config({"cdn_bsae": "x"}, source="config.yml")
        assert len(warnings) == 1
        assert warnings[0].key == "cdn_bsae"
        assert warnings[0].suggestion == "cdn_base"

    def test_unknown_key_without_suggestion(self) -> None:
        warnings = validate_config({"zzz": 1}, source="config.yml")
        assert warnings[0].suggestion is None

    def test_value_types_left_to_loader(self) -> None:
        assert validate_config({"retry_attempts": "x", "timeout": True}, source="config.yml") == []

    def test_non_mapping(self) -> None:
        warnings = validate_config(["a"], source="config.yml")  # type: ignore[arg-type]
        assert "mapping" in warnings[0].message
