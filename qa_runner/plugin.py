"""
qa-runner pytest plugin.

Wires the runner into a pytest-bdd session:

- Command-line options overriding the environment (browser, target
  environment, suite, publication switches, ...)
- One immutable Settings object resolved at configure time
- Optional test-database restore before any scenario runs
- Scenario fixtures for scenarios tagged ``ui``: lifecycle, context, pages
  and the browser session
- Report publication once the session is over, after pytest-bdd has
  written the cucumber JSON (controller process only under xdist)
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import pytest

from qa_runner.models.scenario import ScenarioContext, ScenarioHandle
from qa_runner.services.artifact_manager import ArtifactManager
from qa_runner.services.browser_manager import BrowserManager
from qa_runner.services.environment import EnvironmentUrls, recover_test_db
from qa_runner.services.report_publisher import PublicationResult, ReportPublisher
from qa_runner.services.scenario_lifecycle import ScenarioLifecycle
from qa_runner.utils.config import Settings, resolve_settings
from qa_runner.utils.errors import StateInvalidError
from qa_runner.utils.logging import setup_logging

logger = logging.getLogger(__name__)

UI_MARKER = "ui"

settings_key = pytest.StashKey[Settings]()
metadata_overrides_key = pytest.StashKey[Dict[str, Optional[str]]]()
publication_key = pytest.StashKey[PublicationResult]()

# option dest -> Settings field
_SETTINGS_OPTIONS = {
    "qa_browser": "BROWSER",
    "qa_headless": "HEADLESS",
    "qa_env": "TEST_ENV",
    "qa_user": "TEST_USER",
    "qa_keyclient": "KEYCLIENT",
    "qa_suite": "SUITE",
    "qa_send_email_report": "SEND_EMAIL_REPORT",
    "qa_send_xray_report": "SEND_XRAY_REPORT",
}

# option dest -> metadata field
_METADATA_OPTIONS = {
    "qa_suite": "suite",
    "qa_env": "environment",
    "qa_browser": "browser",
    "qa_user": "user",
    "qa_client": "client",
    "qa_keyclient": "key_client",
    "qa_sprint": "sprint",
}


def pytest_addoption(parser):
    group = parser.getgroup("qa-runner", "qa-runner options")
    group.addoption("--browser", dest="qa_browser", default=None,
                    help="Browser kind: chrome (default), edge or firefox")
    group.addoption("--headless", dest="qa_headless", action="store_true", default=None,
                    help="Run the browser headless (always on under CI)")
    group.addoption("--env", dest="qa_env", default=None,
                    help="Target environment name")
    group.addoption("--user", dest="qa_user", default=None,
                    help="Test user identity")
    group.addoption("--keyclient", dest="qa_keyclient", default=None,
                    help="Client key; restores that client's test database before the run")
    group.addoption("--client", dest="qa_client", default=None,
                    help="Client name reported with the results")
    group.addoption("--sprint", dest="qa_sprint", default=None,
                    help="Sprint label reported with the results")
    group.addoption("--suite", dest="qa_suite", default=None,
                    help="Suite name; also names the cucumber JSON results file")
    group.addoption("--send-email-report", dest="qa_send_email_report", action="store_true", default=None,
                    help="Email a summary once the suite has finished")
    group.addoption("--send-xray-report", dest="qa_send_xray_report", action="store_true", default=None,
                    help="Upload the results to Xray once the suite has finished")


def _is_worker(config) -> bool:
    return hasattr(config, "workerinput")


@pytest.hookimpl(tryfirst=True)
def pytest_configure(config):
    """Resolve settings once, set up logging and prepare the results file."""
    overrides = {field: config.getoption(dest) for dest, field in _SETTINGS_OPTIONS.items()}
    settings = resolve_settings(overrides)
    config.stash[settings_key] = settings
    config.stash[metadata_overrides_key] = {
        field: config.getoption(dest) for dest, field in _METADATA_OPTIONS.items()
    }

    setup_logging(settings)
    config.addinivalue_line("markers", f"{UI_MARKER}: scenario driving a browser session")

    if settings.SEND_XRAY_REPORT and hasattr(config.option, "cucumber_json_path"):
        if not config.option.cucumber_json_path:
            results_path = settings.artifacts_dir / f"{settings.SUITE}.json"
            config.option.cucumber_json_path = str(results_path)
            logger.info(f"Cucumber JSON results will be written to {results_path}")
        Path(config.option.cucumber_json_path).parent.mkdir(parents=True, exist_ok=True)

    if settings.KEYCLIENT and not _is_worker(config):
        _restore_test_database(settings)


def _restore_test_database(settings: Settings) -> None:
    if not settings.TEST_USER_EMAIL or not settings.TEST_USER_PASSWORD:
        raise pytest.UsageError("TEST_USER_EMAIL and TEST_USER_PASSWORD are required to restore the test database")

    urls = EnvironmentUrls.for_environment(settings.TEST_ENV, settings.APP_DOMAIN)
    try:
        recover_test_db(urls, settings.TEST_USER_EMAIL, settings.TEST_USER_PASSWORD, settings.KEYCLIENT)
    except StateInvalidError as e:
        raise pytest.UsageError(f"Could not restore the test database of {settings.KEYCLIENT}: {e}") from e


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Keep each phase report on the item so fixtures can see the outcome."""
    outcome = yield
    report = outcome.get_result()
    setattr(item, f"rep_{report.when}", report)


def pytest_unconfigure(config):
    """Publish the reports; runs after pytest-bdd wrote the cucumber JSON."""
    if _is_worker(config) or settings_key not in config.stash:
        return

    settings = config.stash[settings_key]
    results_path = getattr(config.option, "cucumber_json_path", None)
    publisher = ReportPublisher(settings, overrides=config.stash.get(metadata_overrides_key, {}))
    config.stash[publication_key] = publisher.finalize(Path(results_path) if results_path else None)


def _scenario_failed(item) -> bool:
    return any(
        getattr(getattr(item, f"rep_{when}", None), "failed", False)
        for when in ("setup", "call")
    )


def _scenario_handle(item) -> ScenarioHandle:
    function = getattr(item, "function", None)
    bdd_scenario = getattr(function, "__scenario__", None)
    name = getattr(bdd_scenario, "name", None) or item.name
    return ScenarioHandle(
        name=name,
        node_id=item.nodeid,
        tags=sorted({marker.name for marker in item.iter_markers()})
    )


@pytest.fixture(scope="session")
def app_settings(pytestconfig) -> Settings:
    return pytestconfig.stash[settings_key]


@pytest.fixture(scope="session")
def browser_manager(app_settings):
    manager = BrowserManager(app_settings)
    yield manager
    manager.quit_session()


@pytest.fixture(scope="session")
def artifact_manager(app_settings) -> ArtifactManager:
    return ArtifactManager(app_settings.ARTIFACTS_PATH)


@pytest.fixture(autouse=True)
def scenario_lifecycle(request):
    """
    Lifecycle of the current scenario; None unless it is tagged ``ui``.

    Exit actions always run, including when entering failed half-way, and
    failure evidence is reported as ``attachment`` user properties.
    """
    item = request.node
    if item.get_closest_marker(UI_MARKER) is None:
        yield None
        return

    lifecycle = ScenarioLifecycle(
        request.getfixturevalue("browser_manager"),
        request.getfixturevalue("artifact_manager")
    )
    handle = _scenario_handle(item)
    try:
        lifecycle.start(handle)
        yield lifecycle
    finally:
        lifecycle.finish(failed=_scenario_failed(item))
        for attachment in handle.attachments:
            item.user_properties.append(("attachment", attachment.path))


@pytest.fixture
def scenario_context(scenario_lifecycle) -> ScenarioContext:
    if scenario_lifecycle is None:
        return ScenarioContext()
    return scenario_lifecycle.context


@pytest.fixture
def pages(scenario_lifecycle) -> Any:
    if scenario_lifecycle is None:
        raise StateInvalidError(f"Page objects are only available in scenarios tagged '{UI_MARKER}'")
    return scenario_lifecycle.pages


@pytest.fixture
def browser_session(scenario_lifecycle):
    if scenario_lifecycle is None:
        raise StateInvalidError(f"A browser session is only available in scenarios tagged '{UI_MARKER}'")
    return scenario_lifecycle.session
