"""Basic package tests for worldgrid."""

import logging
from pathlib import Path

import pytest


def test_package_imports():
    """Test that the package can be imported."""
    import worldgrid
    assert worldgrid.__version__ == "0.1.0"


def test_core_imports():
    """Test that core subpackage can be imported."""
    import worldgrid.core


def test_services_imports():
    """Test that services subpackage can be imported."""
    import worldgrid.services


def test_storage_imports():
    """Test that storage subpackage can be imported."""
    import worldgrid.storage


def test_logging_config_imports():
    """Test that logging_config can be imported."""
    from worldgrid.logging_config import setup_logging, get_logger


class TestLogging:
    """Tests for logging setup."""

    @pytest.fixture(autouse=True)
    def reset_handlers(self):
        yield
        root_logger = logging.getLogger("worldgrid")
        for handler in list(root_logger.handlers):
            handler.close()
            root_logger.removeHandler(handler)

    def test_setup_logging_writes_file(self, temp_data_dir: Path):
        from worldgrid.logging_config import setup_logging

        log_path = setup_logging(temp_data_dir / "logs")
        logging.getLogger("worldgrid.test").debug("hello from test")
        for handler in logging.getLogger("worldgrid").handlers:
            handler.flush()

        assert log_path == temp_data_dir / "logs" / "debug.log"
        assert "hello from test" in log_path.read_text()

    def test_setup_logging_replaces_handlers(self, temp_data_dir: Path):
        from worldgrid.logging_config import setup_logging

        setup_logging(temp_data_dir)
        setup_logging(temp_data_dir)
        assert len(logging.getLogger("worldgrid").handlers) == 2

    def test_get_logger_namespaced(self):
        from worldgrid.logging_config import get_logger

        assert get_logger("extras").name == "worldgrid.extras"
        assert get_logger("worldgrid.services").name == "worldgrid.services"

    def test_structured_helpers(self, caplog):
        from worldgrid.logging_config import log_collision, log_spawn

        logger = logging.getLogger("worldgrid.test")
        with caplog.at_level(logging.DEBUG, logger="worldgrid"):
            log_collision(logger, 3, 4, True, "village happy-village local(3,4)")
            log_spawn(logger, "https://a.example", "DEFERRED", "happy-village", "village not loaded")

        assert "COLLISION | world(3,4) | BLOCKED | village happy-village local(3,4)" in caplog.text
        assert "SPAWN | https://a.example | DEFERRED | village=happy-village | village not loaded" in caplog.text
