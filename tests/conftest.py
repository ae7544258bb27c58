import logging

import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo logging configured by main() so later tests start clean."""
    yield
    for handler in list(logging.root.handlers):
        logging.root.removeHandler(handler)
    structlog.reset_defaults()
