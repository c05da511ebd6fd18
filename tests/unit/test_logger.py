import logging

import pytest

from refurb_workflow.logging.logger import Log


class TestRender:
    def test_message_without_context(self) -> None:
        assert Log._render("Job created", {}) == "Job created"

    def test_appends_key_value_pairs(self) -> None:
        rendered = Log._render("Job transitioned", {"job_id": "j-1", "to_state": "DIAGNOSED"})
        assert rendered == "Job transitioned job_id=j-1 to_state=DIAGNOSED"


class TestLevels:
    def test_info_emits_rendered_message(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="refurb_workflow"):
            Log.info("Step completed", job_id="j-1", step="BACKUP_CHECK")
        assert "Step completed job_id=j-1 step=BACKUP_CHECK" in caplog.text

    def test_warning_level(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="refurb_workflow"):
            Log.warning("Rejected transition", action="RETRY")
        assert caplog.records[-1].levelno == logging.WARNING

    def test_debug_suppressed_above_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="refurb_workflow"):
            Log.debug("Prompt composed", job_id="j-1")
        assert "Prompt composed" not in caplog.text


class TestConfigure:
    def test_sets_level_and_single_handler(self) -> None:
        logger = logging.getLogger("refurb_workflow")
        saved_handlers, saved_level = list(logger.handlers), logger.level
        logger.handlers.clear()
        try:
            Log.configure("debug")
            Log.configure("warning")
            assert logger.level == logging.WARNING
            assert len(logger.handlers) == 1
        finally:
            logger.handlers[:] = saved_handlers
            logger.setLevel(saved_level)
