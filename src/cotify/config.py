#!/usr/bin/env python3
"""Configuration module for cotify application"""

import os
import logging
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker


class Config:
    """Application configuration"""

    # Environment
    ENV = os.getenv("COTIFY_ENV", "development")

    # Database configuration
    DB_PATH = Path(os.getenv("COTIFY_DB_PATH", str(Path.home() / ".cotify" / "cotify.db")))
    DB_URL = f"sqlite:///{DB_PATH}"

    # Logging configuration
    LOG_LEVEL = os.getenv("COTIFY_LOG_LEVEL", "INFO")
    LOG_PATH = Path(os.getenv("COTIFY_LOG_PATH", str(Path.home() / ".cotify" / "cotify.log")))

    # Delimited text exported by Excel on Brazilian Windows is Windows-1252;
    # bytes it leaves undefined are decoded as Latin-1 instead
    CSV_ENCODING = os.getenv("COTIFY_CSV_ENCODING", "cp1252")

    # Public CNPJ registry
    CNPJ_LOOKUP_URL = os.getenv(
        "COTIFY_CNPJ_LOOKUP_URL", "https://brasilapi.com.br/api/cnpj/v1/{cnpj}"
    )
    CNPJ_LOOKUP_TIMEOUT = float(os.getenv("COTIFY_CNPJ_LOOKUP_TIMEOUT", "10"))

    @classmethod
    def ensure_db_directory(cls):
        """Create database directory if it doesn't exist"""
        if cls.DB_URL.endswith(":memory:"):
            return
        cls.DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        cls.LOG_PATH.parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def get_engine(cls):
        """Get SQLAlchemy engine with proper configuration"""
        cls.ensure_db_directory()
        echo = cls.ENV == "development" and cls.LOG_LEVEL == "DEBUG"
        engine = create_engine(cls.DB_URL, echo=echo)
        enable_sqlite_foreign_keys(engine)
        return engine

    @classmethod
    def get_session_maker(cls, engine=None):
        """Get SQLAlchemy session maker"""
        if engine is None:
            engine = cls.get_engine()
        return sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def setup_logging(cls):
        """Setup application logging"""
        cls.ensure_db_directory()

        # Create logger
        logger = logging.getLogger("cotify")
        logger.setLevel(getattr(logging, cls.LOG_LEVEL))

        # Clear existing handlers
        logger.handlers.clear()

        # Console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(getattr(logging, cls.LOG_LEVEL))
        console_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

        # File handler
        if cls.ENV == "production":
            file_handler = logging.FileHandler(cls.LOG_PATH, encoding="utf-8")
            file_handler.setLevel(logging.INFO)
            file_formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            file_handler.setFormatter(file_formatter)
            logger.addHandler(file_handler)

        return logger


def enable_sqlite_foreign_keys(engine):
    """Turn on FK enforcement so ON DELETE CASCADE works on SQLite"""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Development configuration
class DevelopmentConfig(Config):
    """Development environment configuration"""

    ENV = "development"
    LOG_LEVEL = "DEBUG"


# Production configuration
class ProductionConfig(Config):
    """Production environment configuration"""

    ENV = "production"
    LOG_LEVEL = "INFO"


# Testing configuration
class TestingConfig(Config):
    """Testing environment configuration"""

    ENV = "testing"
    LOG_LEVEL = "DEBUG"
    DB_PATH = Path(":memory:")  # Use in-memory database for tests
    DB_URL = "sqlite:///:memory:"


# Configuration mapping
config_map = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def get_config(env=None):
    """Get configuration for specified environment"""
    if env is None:
        env = os.getenv("COTIFY_ENV", "development")
    return config_map.get(env, DevelopmentConfig)
