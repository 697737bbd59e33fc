import logging

import pytest


@pytest.fixture(autouse=True)
def reset_root_logging():
    """Drop handlers installed by setup_logging so they do not outlive capsys streams."""
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
