"""
pytest integration.

Enable it from a conftest.py:

    pytest_plugins = ["handlertest.plugin"]

and use the handler_tester fixture:

    def test_items(handler_tester):
        tester = handler_tester(app)
        tester.add_call("list", "GET", "/items").with_checkers(expect_status(200))
        tester.run()

Failures reported during the test are collected and fail the test at teardown,
all of them listed in one message.
"""

import pytest

from .handler_tester import Tester
from .reporting import FailureCollector


@pytest.fixture
def handler_tester(request):
    """Factory building Testers whose failures fail the current test."""
    testers = []

    def make(handler, *calls, **kwargs):
        kwargs.setdefault("reporter", FailureCollector())
        kwargs.setdefault("name", request.node.name)
        tester = Tester(handler, *calls, **kwargs)
        testers.append(tester)
        return tester

    yield make

    failures = []
    for tester in testers:
        tester.close()
        failures.extend(getattr(tester.reporter, "failures", []))
    if failures:
        pytest.fail("\n".join(failures), pytrace=False)
