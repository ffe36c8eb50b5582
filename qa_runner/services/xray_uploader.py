"""
Xray results uploader.

Publishes the cucumber JSON of a finished suite as a Test Execution:
- Client-credential authentication (bearer token)
- Multipart import with a ``results`` part and an ``info`` part
- A single retry when Xray reports it could not parse a results file that
  was probably still being written when it was read
"""

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter

from qa_runner.models.report import ExecutionReportMetadata
from qa_runner.services.file_stability import (
    assert_results_shape,
    wait_until_exists,
    wait_until_stable,
)
from qa_runner.services.report_settings import ReportSettings
from qa_runner.utils.errors import StateInvalidError
from qa_runner.utils.logging import redact_dict

logger = logging.getLogger(__name__)

AUTHENTICATE_PATH = "/api/v2/authenticate"
IMPORT_PATH = "/api/v2/import/execution/cucumber/multipart"
PARSE_ERROR_SIGNATURE = "error parsing results file"

# (connect, read) seconds
DEFAULT_TIMEOUT = (10, 60)


class XrayReportUploader:
    """Uploads cucumber results to Xray."""

    def __init__(
        self,
        settings: ReportSettings,
        session: Optional[requests.Session] = None,
        timeout: Tuple[int, int] = DEFAULT_TIMEOUT,
        retry_delay: float = 1.0,
        exists_timeout: float = 30.0,
        stable_timeout: float = 100.0,
        retry_stable_timeout: float = 10.0,
        poll: float = 0.2,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.settings = settings
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.exists_timeout = exists_timeout
        self.stable_timeout = stable_timeout
        self.retry_stable_timeout = retry_stable_timeout
        self.poll = poll
        self._sleep = sleep
        self.session = session or self._build_session()

    @staticmethod
    def _build_session() -> requests.Session:
        # No transport retries; the parse-error retry is handled in upload()
        session = requests.Session()
        adapter = HTTPAdapter()
        session.mount('http://', adapter)
        session.mount('https://', adapter)
        return session

    def upload(self, metadata: ExecutionReportMetadata, results_path: Path) -> requests.Response:
        """
        Publish a results file.

        Required credentials are checked before touching the file or the
        network.

        Args:
            metadata: Execution metadata used for the Test Execution fields
            results_path: Cucumber JSON written by the runner

        Returns:
            The successful import response

        Raises:
            ConfigurationError: If a required xray.* setting is missing
            StateInvalidError: If the file never stabilizes, is malformed or
                Xray rejects the import
        """
        base_url = self.settings.xray_base_url
        client_id = self.settings.get_required("xray.clientId")
        client_secret = self.settings.get_required("xray.clientSecret")
        project_key = self.settings.get_required("xray.projectKey")

        results_path = Path(results_path)
        wait_until_exists(results_path, timeout=self.exists_timeout, poll=self.poll, sleep=self._sleep)
        wait_until_stable(results_path, timeout=self.stable_timeout, poll=self.poll, sleep=self._sleep)
        assert_results_shape(results_path)

        logger.info(f"Uploading '{results_path.name}' to Xray (project {project_key})")

        token = self.authenticate(base_url, client_id, client_secret)
        info_payload = self.build_info_payload(metadata, project_key)

        response = self._submit(base_url, token, results_path, info_payload)

        if self.is_parse_error(response):
            logger.info(
                f"Xray could not parse the results file, retrying in {self.retry_delay}s "
                "in case it was read while still being written"
            )
            self._sleep(self.retry_delay)
            wait_until_stable(results_path, timeout=self.retry_stable_timeout, poll=self.poll, sleep=self._sleep)
            assert_results_shape(results_path)
            response = self._submit(base_url, token, results_path, info_payload)

        if not response.ok:
            logger.error(f"Xray upload failed ({response.status_code}): {response.text}")
            raise StateInvalidError(f"Xray upload failed ({response.status_code}): {response.text}")

        logger.info(f"Results of suite '{metadata.suite}' published to Xray")
        return response

    def authenticate(self, base_url: str, client_id: str, client_secret: str) -> str:
        """Exchange client credentials for a bearer token."""
        payload = {"client_id": client_id, "client_secret": client_secret}
        url = f"{base_url}{AUTHENTICATE_PATH}"
        logger.info(f"API Request: POST {url}", extra={'body': redact_dict(payload)})

        response = self._post(url, log_body=False, json=payload)
        if not response.ok:
            logger.error(f"Xray authentication failed ({response.status_code}): {response.text}")
            raise StateInvalidError(f"Xray authentication failed ({response.status_code}): {response.text}")

        # Xray answers with the token as a bare JSON string
        try:
            token = response.json()
        except ValueError as e:
            raise StateInvalidError("Could not read the token returned by Xray") from e
        if not isinstance(token, str) or not token:
            raise StateInvalidError("Xray returned an unexpected authentication payload")
        return token

    def build_info_payload(self, metadata: ExecutionReportMetadata, project_key: str) -> str:
        info: Dict[str, Any] = {
            "fields": {
                "project": {"key": project_key},
                "issuetype": {"name": self.settings.xray_issue_type},
                "summary": metadata.build_xray_summary(),
                "description": metadata.build_xray_description(),
            }
        }
        return json.dumps(info, indent=2, ensure_ascii=False)

    @staticmethod
    def is_parse_error(response: requests.Response) -> bool:
        if response is None or response.status_code != 400:
            return False
        return PARSE_ERROR_SIGNATURE in (response.text or "").lower()

    def _submit(self, base_url: str, token: str, results_path: Path, info_payload: str) -> requests.Response:
        results = results_path.read_bytes()
        stat = results_path.stat()
        url = f"{base_url}{IMPORT_PATH}"
        logger.info(
            f"API Request: POST {url} (results={results_path.name}, "
            f"size={stat.st_size} bytes, mtime_ns={stat.st_mtime_ns})"
        )
        return self._post(
            url,
            headers={"Authorization": f"Bearer {token}"},
            files={
                "results": (results_path.name, results, "application/json"),
                "info": ("info.json", info_payload.encode("utf-8"), "application/json"),
            }
        )

    def _post(self, url: str, log_body: bool = True, **kwargs) -> requests.Response:
        start_time = time.time()
        try:
            response = self.session.post(url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Communication error with Xray: {e}")
            raise StateInvalidError(f"Communication error with Xray: {e}") from e

        duration_ms = int((time.time() - start_time) * 1000)
        body = (response.text or "")[:500] if log_body else "[REDACTED]"
        logger.info(f"API Response: {response.status_code} ({duration_ms}ms)", extra={'body': body})
        return response
