"""
Target environment URLs and test-database recovery.

Before a run against a client copy, the test database of that client can be
restored through the support API so scenarios start from known data.
"""

import json
import logging
import time
from typing import Optional, Tuple

import requests
from pydantic import BaseModel, ConfigDict, Field

from qa_runner.utils.errors import StateInvalidError
from qa_runner.utils.logging import redact_dict

logger = logging.getLogger(__name__)

PRODUCTION_ENV = "pro"
AUTHENTICATE_PATH = "/authentication/authenticate"
RECOVER_TEST_DB_PATH = "/support-configuration-utilities/recover-test-db"

# (connect, read) seconds; restoring a database can take a while
DEFAULT_TIMEOUT: Tuple[int, int] = (10, 300)


class EnvironmentUrls(BaseModel):
    """Root, API and web URLs of one environment."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Environment name")
    root_url: str = Field(..., description="https://<env>.<domain>, or https://<domain> for production")

    @classmethod
    def for_environment(cls, name: str, domain: str) -> "EnvironmentUrls":
        name = (name or "").strip()
        domain = domain.strip().strip("/")
        if not name or name.lower() == PRODUCTION_ENV:
            root = f"https://{domain}"
        else:
            root = f"https://{name}.{domain}"
        return cls(name=name or PRODUCTION_ENV, root_url=root)

    @property
    def api_url(self) -> str:
        return f"{self.root_url}/api"

    @property
    def web_url(self) -> str:
        return f"{self.root_url}/auth"


def _post(session: requests.Session, url: str, timeout, **kwargs) -> requests.Response:
    start_time = time.time()
    try:
        response = session.post(url, timeout=timeout, **kwargs)
    except requests.RequestException as e:
        logger.error(f"Communication error with {url}: {e}")
        raise StateInvalidError(f"Communication error with {url}: {e}") from e

    duration_ms = int((time.time() - start_time) * 1000)
    logger.info(f"API Response: {response.status_code} ({duration_ms}ms)")
    return response


def authenticate(
    urls: EnvironmentUrls,
    email: str,
    password: str,
    session: Optional[requests.Session] = None,
    timeout=DEFAULT_TIMEOUT
) -> str:
    """
    Log the test user in against the environment API.

    Returns:
        The session token

    Raises:
        StateInvalidError: On a non-200 answer or a response without a token
    """
    session = session or requests.Session()
    payload = {"Email": email, "Password": password}
    url = f"{urls.api_url}{AUTHENTICATE_PATH}"
    logger.info(f"API Request: POST {url}", extra={'body': redact_dict(payload)})

    response = _post(session, url, timeout, json=payload)
    if response.status_code != 200:
        raise StateInvalidError(f"Authentication failed ({response.status_code}): {response.text}")

    try:
        token = response.json().get("Token")
    except (ValueError, AttributeError) as e:
        raise StateInvalidError("Authentication response is not a JSON object") from e
    if not token:
        raise StateInvalidError("Authentication response does not contain a token")
    return token


def recover_test_db(
    urls: EnvironmentUrls,
    email: str,
    password: str,
    key_client: str,
    session: Optional[requests.Session] = None,
    timeout=DEFAULT_TIMEOUT
) -> requests.Response:
    """
    Restore the test database of a client.

    Args:
        urls: Target environment
        email: Test user email
        password: Test user password
        key_client: Key of the client copy to restore

    Raises:
        StateInvalidError: If authentication or the restore call fails
    """
    session = session or requests.Session()
    token = authenticate(urls, email, password, session=session, timeout=timeout)

    url = f"{urls.api_url}{RECOVER_TEST_DB_PATH}"
    logger.info(f"Restoring test database for client {key_client} on {urls.name}")
    response = _post(
        session,
        url,
        timeout,
        data=json.dumps(key_client),
        headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
    )
    if response.status_code != 200:
        raise StateInvalidError(f"Test database restore failed ({response.status_code}): {response.text}")

    logger.info(f"Test database restored for client {key_client}")
    return response
