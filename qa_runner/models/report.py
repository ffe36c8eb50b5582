"""Execution metadata reported once the suite has finished."""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"

AUTOMATION_SIGNATURE = "This run was executed automatically by qa-runner."


class MetadataField:
    """Where one metadata field may come from, highest priority first."""

    def __init__(self, name: str, env_vars: Sequence[str], settings_key: str):
        self.name = name
        self.env_vars: Tuple[str, ...] = tuple(env_vars)
        self.settings_key = settings_key


METADATA_FIELDS = (
    MetadataField("suite", ["SUITE"], "suite"),
    MetadataField("environment", ["TEST_ENV"], "environment"),
    MetadataField("browser", ["BROWSER"], "browser"),
    MetadataField("user", ["TEST_USER"], "user"),
    MetadataField("client", ["CLIENTE"], "client"),
    MetadataField("key_client", ["KEYCLIENT"], "keyclient"),
    MetadataField("sprint", ["SPRINT"], "sprint"),
    MetadataField("pipeline_number", ["CI_PIPELINE_NUMBER", "BITBUCKET_BUILD_NUMBER"], "pipeline.number"),
    MetadataField("pipeline_url", ["CI_PIPELINE_URL"], "pipeline.url"),
)


def first_non_blank(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


class ExecutionReportMetadata(BaseModel):
    """Frozen snapshot of suite-level facts for the report channels."""

    model_config = ConfigDict(frozen=True)

    suite: str = Field(default=NOT_AVAILABLE, description="Suite name")
    environment: str = Field(default=NOT_AVAILABLE, description="Target environment")
    browser: str = Field(default=NOT_AVAILABLE, description="Browser kind")
    user: str = Field(default=NOT_AVAILABLE, description="Test user identity")
    client: str = Field(default=NOT_AVAILABLE, description="Client name")
    key_client: str = Field(default=NOT_AVAILABLE, description="Client restore key")
    sprint: str = Field(default=NOT_AVAILABLE, description="Sprint label")
    pipeline_number: str = Field(default=NOT_AVAILABLE, description="CI pipeline number")
    pipeline_url: str = Field(default=NOT_AVAILABLE, description="CI pipeline URL")

    @classmethod
    def collect(
        cls,
        settings,
        overrides: Optional[Mapping[str, Optional[str]]] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> "ExecutionReportMetadata":
        """
        Resolve every field independently.

        Precedence per field: explicit override, environment variable(s),
        reporting settings default, then "N/A". A missing pipeline URL is
        derived from the pipeline base URL when a pipeline number is known.

        Args:
            settings: ReportSettings snapshot
            overrides: Field name -> explicit value (e.g. command-line options)
            environ: Environment mapping, defaults to os.environ

        Returns:
            ExecutionReportMetadata
        """
        overrides = overrides or {}
        environ = os.environ if environ is None else environ
        logger.info("Collecting execution metadata...")

        values = {}
        defaulted = []
        for source in METADATA_FIELDS:
            value = first_non_blank(
                overrides.get(source.name),
                *(environ.get(var) for var in source.env_vars),
                settings.get(source.settings_key)
            )
            if value is None and source.name == "pipeline_url":
                value = cls._default_pipeline_url(settings, values["pipeline_number"])
            if value is None:
                value = NOT_AVAILABLE
                defaulted.append(source.name)
            values[source.name] = value

        if defaulted:
            logger.info(f"Default values applied for: {', '.join(defaulted)}")

        metadata = cls(**values)
        logger.info(
            f"Metadata: suite='{metadata.suite}', environment='{metadata.environment}', "
            f"browser='{metadata.browser}', user='{metadata.user}', client='{metadata.client}', "
            f"keyClient='{metadata.key_client}', sprint='{metadata.sprint}', "
            f"pipelineNumber='{metadata.pipeline_number}', pipelineUrl='{metadata.pipeline_url}'"
        )
        return metadata

    @staticmethod
    def _default_pipeline_url(settings, pipeline_number: str) -> Optional[str]:
        if pipeline_number == NOT_AVAILABLE:
            return None
        return f"{settings.pipeline_base_url}{pipeline_number}"

    def results_path(self, artifacts_dir: Path) -> Path:
        """Where the runner writes the cucumber JSON for this suite."""
        name = "suite" if self.suite == NOT_AVAILABLE else self.suite
        return Path(artifacts_dir) / f"{name}.json"

    def build_email_subject(self) -> str:
        return f"Results {self.suite}"

    def build_email_body(self) -> str:
        lines = [
            f'Suite: "{self.suite}"',
            f'Environment: "{self.environment}"',
            f'Browser: "{self.browser}"',
            f'User: "{self.user}"',
            f'Client: "{self.client}"',
            f'KeyClient: "{self.key_client}"',
            f'Sprint: "{self.sprint}"',
            f'Pipeline #: "{self.pipeline_number}"',
            "",
            AUTOMATION_SIGNATURE,
            "Pipeline details:",
            self.pipeline_url,
        ]
        return os.linesep.join(lines)

    def build_xray_summary(self) -> str:
        return "/".join([
            self.suite,
            self.client,
            self.key_client,
            self.browser,
            self.environment,
            self.user,
            self.sprint,
        ])

    def build_xray_description(self) -> str:
        return self.build_email_body()
