"""
Tests for billing configuration loading (billing_config/).

Covers defaults, environment overrides, validation failures and the
BILLING_CONFIG_TRACE log entry.
"""

from pathlib import Path

import pytest
import yaml

from billing_config import DEFAULT_CONFIG_PATH, get_active_config
from billing_config.loader import apply_env_overrides, parse_config
from billing_kernel.exceptions import ConfigError


def _write(tmp_path: Path, data) -> Path:
    path = tmp_path / "billing.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:

    def test_shipped_defaults(self):
        config = get_active_config(environ={})

        assert config.cascade.mode == "chained"
        assert config.cascade.due_days == 30
        assert config.numbering.width == 4
        assert config.numbering.prefixes["delivery_note"] == "BL"
        assert config.numbering.derived_prefixes["purchase_order"] == "PO"
        assert config.fingerprint.sort_by_line_uid is False
        assert config.logging.level == "INFO"
        assert len(config.checksum) == 64

    def test_empty_file_uses_dataclass_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        config = get_active_config(path, environ={})
        assert config.cascade.mode == "chained"
        assert config.numbering.prefixes["invoice"] == "INV"

    def test_partial_prefix_override(self, tmp_path):
        path = _write(tmp_path, {"numbering": {"prefixes": {"invoice": "FAC"}}})
        config = get_active_config(path, environ={})
        assert config.numbering.prefixes == {
            "purchase_order": "BC", "delivery_note": "BL", "invoice": "FAC",
        }

    def test_default_path_exists(self):
        assert DEFAULT_CONFIG_PATH.is_file()


class TestEnvironmentOverrides:

    def test_database_url_override(self):
        config = get_active_config(environ={"BILLING_DATABASE_URL": "sqlite:///other.db"})
        assert config.database.url == "sqlite:///other.db"

    def test_override_does_not_mutate_source(self):
        data = {"database": {"url": "sqlite:///a.db"}}
        apply_env_overrides(data, {"BILLING_DATABASE_URL": "sqlite:///b.db"})
        assert data["database"]["url"] == "sqlite:///a.db"

    def test_override_changes_checksum(self):
        base = get_active_config(environ={})
        other = get_active_config(environ={"BILLING_DATABASE_URL": "sqlite:///other.db"})
        assert base.checksum != other.checksum


class TestValidation:

    @pytest.mark.parametrize(
        "data",
        [
            {"cascade": {"mode": "star"}},
            {"cascade": {"due_days": -1}},
            {"cascade": {"due_days": "30"}},
            {"numbering": {"width": 0}},
            {"numbering": {"prefixes": {"invoice": ""}}},
            {"numbering": {"prefixes": {"invoice": "IN-V"}}},
            {"numbering": {"prefixes": {"receipt": "RC"}}},
            {"fingerprint": {"sort_by_line_uid": "yes"}},
            {"database": {"url": ""}},
            {"logging": {"level": "LOUD"}},
            {"cascade": ["chained"]},
        ],
    )
    def test_invalid_values_rejected(self, data):
        with pytest.raises(ConfigError):
            parse_config(data)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_config({"cascade": {"mode": "star"}})

    def test_error_names_field(self):
        with pytest.raises(ConfigError) as exc_info:
            parse_config({"numbering": {"width": 0}})
        assert exc_info.value.field == "numbering.width"

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            get_active_config(path, environ={})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml", environ={})

    def test_level_case_insensitive(self):
        assert parse_config({"logging": {"level": "debug"}}).logging.level == "DEBUG"


class TestChecksumAndTrace:

    def test_checksum_deterministic(self, tmp_path):
        data = {"cascade": {"mode": "fanned", "due_days": 15}}
        first = get_active_config(_write(tmp_path, data), environ={})
        second = get_active_config(_write(tmp_path, data), environ={})
        assert first.checksum == second.checksum

    def test_config_trace_logged(self, tmp_path, captured_logs):
        path = _write(tmp_path, {"cascade": {"mode": "fanned"}})

        config = get_active_config(path, environ={})

        traces = [r for r in captured_logs() if r["message"] == "BILLING_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["cascade_mode"] == "fanned"
        assert traces[0]["logger"] == "billing_kernel.config"
