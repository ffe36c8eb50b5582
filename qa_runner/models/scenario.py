"""Scenario state shared between steps."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ScenarioState(str, Enum):
    """Lifecycle states of a scenario."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    FINISHED = "finished"


class Attachment(BaseModel):
    """Evidence file attached to a scenario."""

    path: str = Field(..., description="Path to the evidence file")
    label: str = Field(..., description="Human readable description")
    media_type: str = Field(default="image/png", description="MIME type of the file")


class ScenarioHandle(BaseModel):
    """Identity and outcome of a running scenario."""

    name: str = Field(..., description="Scenario name as written in the feature file")
    node_id: Optional[str] = Field(None, description="pytest node id")
    tags: List[str] = Field(default_factory=list, description="Scenario tags")
    failed: bool = Field(default=False, description="Set once any step fails")
    started_at: datetime = Field(default_factory=datetime.now, description="Start time")
    attachments: List[Attachment] = Field(default_factory=list, description="Attached evidence")

    def attach(self, path: Path, label: str, media_type: str = "image/png") -> Attachment:
        attachment = Attachment(path=str(path), label=label, media_type=media_type)
        self.attachments.append(attachment)
        return attachment


class ScenarioContext(BaseModel):
    """
    Per-scenario mutable bag used by steps to talk to each other.

    One instance exists per running scenario; nothing in it outlives the
    scenario, including the last downloaded file.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    response: Optional[Any] = Field(None, description="Last HTTP response received by an API step")
    scenario: Optional[ScenarioHandle] = Field(None, description="Scenario being executed")
    last_downloaded: Optional[Path] = Field(None, description="Last file downloaded by the browser")
    values: Dict[str, Any] = Field(default_factory=dict, description="Free-form values shared by steps")

    def set_value(self, key: str, value: Any) -> None:
        self.values[key] = value

    def get_value(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def reset(self) -> None:
        """Drop everything bound during the scenario."""
        self.response = None
        self.last_downloaded = None
        self.values.clear()
