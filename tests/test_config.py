"""Tests for configuration loading and logging setup."""

import io
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from nibble_cpu import Processor
from nibble_cpu.config import DEFAULTS, ConfigError, init_logging, load_config


class TestLoadConfig:
    """Test load_config inputs."""

    def test_defaults(self):
        cfg = load_config()
        assert cfg == DEFAULTS
        assert cfg is not DEFAULTS

    def test_dict_overlay(self):
        cfg = load_config({"trace": True, "max_cycles": "100"})
        assert cfg["trace"] is True
        assert cfg["max_cycles"] == 100
        assert cfg["entry_point"] == 0

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "cpu.yaml"
        path.write_text("entry_point: 0x200\ntrace: true\nlog_level: debug\n")
        cfg = load_config(str(path))
        assert cfg["entry_point"] == 0x200
        assert cfg["trace"] is True
        assert cfg["log_level"] == "DEBUG"

    def test_yaml_path_object(self, tmp_path):
        path = tmp_path / "cpu.yaml"
        path.write_text("max_cycles: 10\n")
        assert load_config(path)["max_cycles"] == 10

    def test_empty_yaml_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == DEFAULTS

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("trace: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_unsupported_input(self):
        with pytest.raises(ConfigError):
            load_config(42)


class TestValidation:
    """Test semantic validation."""

    def test_unknown_key(self):
        with pytest.raises(ConfigError, match="memory_size"):
            load_config({"memory_size": 8192})

    @pytest.mark.parametrize("entry", [-2, 4095, 4096])
    def test_entry_point_out_of_range(self, entry):
        with pytest.raises(ConfigError):
            load_config({"entry_point": entry})

    def test_last_valid_entry_point(self):
        assert load_config({"entry_point": 4094})["entry_point"] == 4094

    def test_bad_entry_point_type(self):
        with pytest.raises(ConfigError):
            load_config({"entry_point": "start"})

    def test_non_positive_cycle_limit(self):
        with pytest.raises(ConfigError):
            load_config({"max_cycles": 0})

    def test_trace_string(self):
        assert load_config({"trace": "False"})["trace"] is False
        with pytest.raises(ConfigError):
            load_config({"trace": "maybe"})

    def test_bad_log_level(self):
        with pytest.raises(ConfigError):
            load_config({"log_level": "LOUD"})

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestProcessorConfig:
    """Test how the processor applies config."""

    def test_processor_rejects_bad_config(self):
        with pytest.raises(ConfigError):
            Processor({"entry_point": 5000})

    def test_log_level_applied_to_package_logger(self):
        pkg_logger = logging.getLogger("nibble_cpu")
        previous = pkg_logger.level
        try:
            Processor({"log_level": "ERROR"})
            assert pkg_logger.level == logging.ERROR
        finally:
            pkg_logger.setLevel(previous)


class TestInitLogging:
    """Test console logging setup."""

    def test_debug_output(self):
        stream = io.StringIO()
        pkg_logger = init_logging("debug", stream=stream)
        try:
            cpu = Processor()
            cpu.load(bytes([0x60, 0x01, 0x00, 0x00]))
            cpu.run()
            output = stream.getvalue()
            assert "OP_LOAD_IMM" in output
            assert "Halted" in output
        finally:
            for h in list(pkg_logger.handlers):
                pkg_logger.removeHandler(h)
            pkg_logger.setLevel(logging.NOTSET)

    def test_repeated_calls_do_not_duplicate_handlers(self):
        pkg_logger = init_logging("INFO", stream=io.StringIO())
        init_logging("INFO", stream=io.StringIO())
        try:
            assert len(pkg_logger.handlers) == 1
        finally:
            for h in list(pkg_logger.handlers):
                pkg_logger.removeHandler(h)
            pkg_logger.setLevel(logging.NOTSET)
