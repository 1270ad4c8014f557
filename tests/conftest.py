import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Selects the config overlay (PROTEAN_ENV) and pins the adapters to their
    in-process fakes, so no test ever reaches a real gateway or carrier.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ["PAYMENT_GATEWAY"] = "fake"
    os.environ["SHIPPING_PROVIDER"] = "fake"
    os.environ.setdefault("LOG_DIR", str(Path(session.config.rootpath) / ".pytest_logs"))


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
