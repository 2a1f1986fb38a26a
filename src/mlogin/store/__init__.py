"""
Object store and job service access for mlogin.
"""

from mlogin.store.base import StoreClient
from mlogin.store.http_store import HttpStoreClient
from mlogin.store.models import (
    Job,
    JobError,
    JobPhase,
    JobSpec,
    JobState,
    JobStats,
    ObjectInfo,
)

__all__ = [
    "StoreClient",
    "HttpStoreClient",
    "Job",
    "JobError",
    "JobPhase",
    "JobSpec",
    "JobState",
    "JobStats",
    "ObjectInfo",
]
