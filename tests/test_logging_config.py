"""
Tests for component logging.
"""

import logging

import pytest

from voice_frontend.utils.logging_config import (
    ROOT_LOGGER_NAME,
    StructuredFormatter,
    get_logger,
    parse_component_levels,
    setup_logging,
)


class TestComponentLevels:
    def test_parse(self):
        assert parse_component_levels("arbiter=DEBUG, upload=warning") == {
            'arbiter': logging.DEBUG,
            'upload': logging.WARNING,
        }
        assert parse_component_levels("") == {}
        assert parse_component_levels(None) == {}

    @pytest.mark.parametrize("entry", ["arbiter", "arbiter=LOUD"])
    def test_parse_rejects_bad_entries(self, entry):
        with pytest.raises(ValueError):
            parse_component_levels(entry)

    def test_override_applies_to_one_component(self, tmp_path):
        log_file = tmp_path / "logs" / "frontend.log"
        setup_logging(level="WARNING", log_file=log_file, component_levels="arbiter=DEBUG")
        try:
            get_logger("arbiter").debug("Microphone: NONE → RECORDER")
            get_logger("upload").info("Uploading recording")
            for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
                handler.flush()

            text = log_file.read_text()
            assert "Microphone: NONE → RECORDER" in text
            assert "[arbiter" in text
            assert "Uploading recording" not in text
        finally:
            logging.getLogger(f"{ROOT_LOGGER_NAME}.arbiter").setLevel(logging.NOTSET)
            root = logging.getLogger(ROOT_LOGGER_NAME)
            root.propagate = True
            for handler in list(root.handlers):
                root.removeHandler(handler)
                handler.close()


class TestFormatter:
    def test_turn_suffix_and_component(self):
        formatter = StructuredFormatter(use_colors=False, use_emojis=False)
        record = logging.LogRecord(f"{ROOT_LOGGER_NAME}.orchestrator", logging.INFO, __file__, 1,
                                   "recording → uploading", None, None)
        record.turn = 3

        line = formatter.format(record)

        assert "[orchestrator" in line
        assert "[INFO" in line
        assert line.endswith("recording → uploading (turn 3)")
