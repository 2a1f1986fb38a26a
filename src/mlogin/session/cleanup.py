"""
Cleanup coordinator: exactly-once teardown of a session's remote resources.

Any number of triggers (interrupt, remote error, remote exit, job completion,
transport reset) may request teardown, in any order and concurrently. The
first request wins; every later request waits on the same teardown.
"""

import asyncio

from mlogin.errors import ObjectNotFoundError, StoreError
from mlogin.logger import get_logger
from mlogin.session.jobs import JobLifecycleManager
from mlogin.session.state import Session
from mlogin.store.base import StoreClient

logger = get_logger(__name__)


class CleanupCoordinator:
    """Cancels the job and deletes the config object, once."""

    def __init__(self, session: Session, jobs: JobLifecycleManager, client: StoreClient):
        self.session = session
        self.jobs = jobs
        self.client = client
        self._teardown: asyncio.Task | None = None
        self._setup_step: asyncio.Future | None = None

    def track_setup(self, step: asyncio.Future | None) -> None:
        """
        Register the setup step currently in flight.

        Teardown lets that step settle before reading the session, so a job
        or config object created while teardown starts is still released.
        """
        self._setup_step = step

    def trigger(self, status: int) -> asyncio.Task | None:
        """Start teardown if it has not started yet; safe from signal handlers."""
        if self.session.running:
            self.session.running = False
            logger.debug(f"Teardown requested (status {status})")
            self._teardown = asyncio.ensure_future(self._run(status))
        return self._teardown

    async def cleanup(self, status: int) -> None:
        """Request teardown and wait until it has finished."""
        teardown = self.trigger(status)
        if teardown is not None:
            await asyncio.shield(teardown)

    async def _run(self, status: int) -> None:
        poll_task = self.session.poll_task
        if poll_task is not None and poll_task is not asyncio.current_task():
            poll_task.cancel()

        step = self._setup_step
        if step is not None and not step.done():
            await asyncio.wait({step})

        results = await asyncio.gather(
            self._cancel_job(), self._delete_config(), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                logger.warning(f"Cleanup step failed: {result}")

        self.session.finish(status)

    async def _cancel_job(self) -> None:
        job_id = self.session.job_id
        if not self.session.cancel_requested or job_id is None:
            return
        try:
            await self.jobs.cancel(job_id)
        except StoreError as e:
            logger.warning(f"Could not cancel job {job_id}: {e}")
        finally:
            self.session.cancel_requested = False

    async def _delete_config(self) -> None:
        key = self.session.config_key
        if key is None:
            return
        try:
            await self.client.delete_object(key)
            logger.debug(f"Deleted {key}")
        except ObjectNotFoundError:
            logger.debug(f"{key} already removed")
        except StoreError as e:
            logger.warning(f"Could not delete {key}: {e}")
