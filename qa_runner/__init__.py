"""qa-runner: browser scenario lifecycle and post-suite reporting for pytest-bdd suites."""

__version__ = "1.0.0"
