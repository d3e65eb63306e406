import logging

import pytest


@pytest.fixture(autouse=True)
def restore_root_logging():
    """detect_ssid.main() installs a console handler on the root logger; drop it after each test"""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
    root.setLevel(level)
