"""
Pydantic models for objects and jobs exchanged with the object store.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ObjectInfo(BaseModel):
    """Metadata returned for a stored path."""

    path: str
    type: Literal["object", "directory"] = "object"
    size: int | None = None
    content_type: str | None = None


class JobState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"


class JobStats(BaseModel):
    model_config = ConfigDict(extra="ignore")

    retries: int = 0
    errors: int = 0
    outputs: int = 0
    tasks: int = 0


class Job(BaseModel):
    """Job status as reported by the job service."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    state: JobState = JobState.QUEUED
    cancelled: bool = False
    phases: list[dict[str, Any]] = Field(default_factory=list)
    stats: JobStats = Field(default_factory=JobStats)


class JobPhase(BaseModel):
    """One phase of a job descriptor."""

    type: Literal["map", "reduce"]
    exec: str
    assets: list[str] = Field(default_factory=list)
    memory: int | None = None
    disk: int | None = None
    init: str | None = None
    image: str | None = None


class JobSpec(BaseModel):
    """Job descriptor submitted on creation."""

    name: str
    phases: list[JobPhase]


class JobError(BaseModel):
    """A single error record produced by a task of the job."""

    model_config = ConfigDict(extra="allow")

    phase: int | str | None = None
    what: str = ""
    code: str = ""
    message: str = ""
    input: str | None = None
