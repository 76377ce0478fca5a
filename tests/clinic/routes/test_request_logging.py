import logging

from fastapi.testclient import TestClient

from clinic.core.logger import LOG_FORMAT, setup_logging
from clinic.main import app


def test_setup_logging_installs_single_handler() -> None:
    logger = setup_logging()
    again = setup_logging()

    assert logger is again
    assert logger.name == 'clinic'
    assert len(logger.handlers) == 1
    assert logger.handlers[0].formatter._fmt == LOG_FORMAT


def test_requests_are_logged_with_status_and_duration(caplog) -> None:
    client = TestClient(app)

    with caplog.at_level(logging.INFO, logger='clinic.requests'):
        response = client.get('/')

    assert response.status_code == 200
    assert 'Method: GET | Path: / | Status: 200 | Duration:' in caplog.text
