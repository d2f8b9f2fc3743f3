"""
Global pytest fixtures for the nscon test suite.

Keeps tests away from the operator's real ~/.nscon configuration.
"""
import os
import tempfile

import pytest
import structlog

# Set test environment BEFORE any nscon imports
_TEST_HOME = tempfile.mkdtemp(prefix="nscon-tests-")
for _name in [key for key in os.environ if key.upper().startswith("NSCON_")]:
    del os.environ[_name]
os.environ["NSCON_CONFIG_FILE"] = os.path.join(_TEST_HOME, "config.yaml")


@pytest.fixture(autouse=True)
def _reset_logging_config():
    yield
    structlog.reset_defaults()
