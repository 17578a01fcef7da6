import logging

import pytest


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger('qrgrid')
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
