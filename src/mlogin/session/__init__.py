"""
Session setup and teardown for mlogin.

The orchestrator lives in ``mlogin.session.orchestrator`` and is imported
from there directly.
"""

from mlogin.session.cleanup import CleanupCoordinator
from mlogin.session.jobs import JobLifecycleManager, JobOptions
from mlogin.session.poller import CompletionPoller
from mlogin.session.publisher import ConfigObject, ConfigPublisher
from mlogin.session.state import Session

__all__ = [
    "CleanupCoordinator",
    "JobLifecycleManager",
    "JobOptions",
    "CompletionPoller",
    "ConfigObject",
    "ConfigPublisher",
    "Session",
]
