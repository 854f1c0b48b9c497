"""Tests for configuration"""

import logging

from sqlalchemy import text

from cotify.config import (
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    get_config,
)


def test_get_config():
    """Test selecting a configuration by name"""
    assert get_config("testing") is TestingConfig
    assert get_config("production") is ProductionConfig
    assert get_config("unknown") is DevelopmentConfig


def test_get_config_from_environment(monkeypatch):
    """Test selecting a configuration from COTIFY_ENV"""
    monkeypatch.setenv("COTIFY_ENV", "production")
    assert get_config() is ProductionConfig


def test_testing_engine_enforces_foreign_keys():
    """Test the SQLite foreign key pragma is on"""
    engine = TestingConfig.get_engine()
    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
    engine.dispose()


def test_setup_logging(tmp_path, monkeypatch):
    """Test logging setup for the testing configuration"""
    monkeypatch.setattr(TestingConfig, "LOG_PATH", tmp_path / "cotify.log")
    logger = TestingConfig.setup_logging()
    assert logger.name == "cotify"
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
