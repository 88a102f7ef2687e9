# tests/test_logging.py
import logging

from pythonjsonlogger.json import JsonFormatter

from app.config import DevelopmentConfig, ProductionConfig
from app.core.logging import setup_logging

from helpers import TEST_SECRET_KEY


def _root_formatter():
    (handler,) = logging.getLogger().handlers
    return handler.formatter


def test_development_logs_plain_text():
    setup_logging(DevelopmentConfig(SECRET_KEY=TEST_SECRET_KEY))
    assert not isinstance(_root_formatter(), JsonFormatter)


def test_production_logs_json():
    setup_logging(ProductionConfig(SECRET_KEY=TEST_SECRET_KEY))
    assert isinstance(_root_formatter(), JsonFormatter)
