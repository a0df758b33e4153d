"""Tests for the receivables logger namespace."""

import logging

from app.core.logging import NAMESPACE, get_logger, setup_logging


class TestGetLogger:
    def test_strips_package_prefix(self):
        assert get_logger("app.services.store").name == "receivables.services.store"

    def test_keeps_other_names(self):
        assert get_logger("scripts.backfill").name == "receivables.scripts.backfill"


class TestSetupLogging:
    def test_handler_attached_once(self):
        setup_logging("INFO")
        logger = setup_logging("DEBUG")

        console = [h for h in logger.handlers if h.get_name() == "receivables-console"]
        assert len(console) == 1
        assert logger.name == NAMESPACE
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_unknown_level_falls_back_to_info(self):
        assert setup_logging("verbose").level == logging.INFO
