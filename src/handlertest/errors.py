"""
Exception hierarchy for handlertest.

Everything raised on purpose by the package derives from HandlerTestError.
ScenarioFailed is also an AssertionError so pytest reports it as a test failure.
"""


class HandlerTestError(Exception):
    """Base class for handlertest errors."""


class RenderError(HandlerTestError):
    """A template could not be parsed or evaluated against the value store."""


class BodyError(HandlerTestError):
    """A request body could not be materialized."""


class DecodeError(HandlerTestError):
    """A response body could not be decoded into the registered target."""


class ScenarioError(HandlerTestError):
    """A YAML scenario or config file is malformed."""


class ScenarioFailed(HandlerTestError, AssertionError):
    """One or more calls of a scenario reported failures."""

    def __init__(self, failures):
        self.failures = list(failures)
        lines = [f"{len(self.failures)} failure(s):"]
        lines.extend(f"  - {f}" for f in self.failures)
        super().__init__("\n".join(lines))
