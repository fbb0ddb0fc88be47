import logging

import pytest

from core.logging_config import SecurityEventFilter


def make_record(name, level):
    return logging.LogRecord(name, level, __file__, 1, "message", None, None)


@pytest.mark.parametrize("name, level, expected", [
    ("services.auth_service", logging.WARNING, True),
    ("services.rate_limiter", logging.ERROR, True),
    ("services.access_gate", logging.WARNING, True),
    ("services.auth_service", logging.INFO, False),
    ("services.janitor", logging.WARNING, False),
    ("sqlalchemy.engine", logging.ERROR, False),
])
def test_security_event_filter(name, level, expected):
    assert SecurityEventFilter().filter(make_record(name, level)) is expected
