"""
Completion poller: watches the job until it is done and classifies the end.
"""

import asyncio
from typing import Callable

from mlogin.config import POLL_INTERVAL
from mlogin.errors import StoreError
from mlogin.logger import get_logger
from mlogin.session.state import Session
from mlogin.store.base import StoreClient
from mlogin.store.models import Job, JobState

logger = get_logger(__name__)


class CompletionPoller:
    """
    Queries job status at a fixed interval.

    Each tick waits for its own query before sleeping again, so ticks never
    overlap. When the job is done the classified exit status is handed to
    ``on_complete`` and the loop ends.

    Args:
        session: Shared session state.
        client: Store client used for status and error queries.
        on_complete: Called with the exit status once the job is done.
        interval: Seconds between queries.
    """

    def __init__(
        self,
        session: Session,
        client: StoreClient,
        on_complete: Callable[[int], object],
        interval: float = POLL_INTERVAL,
    ):
        self.session = session
        self.client = client
        self.on_complete = on_complete
        self.interval = interval

    def start(self) -> asyncio.Task:
        task = asyncio.create_task(self._run_loop())
        self.session.poll_task = task
        return task

    async def _run_loop(self) -> None:
        while self.session.running:
            await asyncio.sleep(self.interval)
            if not self.session.running:
                break

            try:
                job = await self.client.get_job(self.session.job_id)
            except StoreError as e:
                logger.warning(f"Job status query failed: {e}")
                continue

            if job.state != JobState.DONE:
                continue

            status = await self.classify(job)
            self.on_complete(status)
            return

    async def classify(self, job: Job) -> int:
        """Decide the session exit status for a finished job."""
        if job.stats.retries > 0:
            logger.error(
                f"job {job.id} hit an internal error and was retried; "
                "please try again"
            )
            return 1

        if job.stats.errors > 0:
            await self._report_errors(job)
            return 1

        logger.debug(f"Job {job.id} finished")
        return 0

    async def _report_errors(self, job: Job) -> None:
        logger.error(f"job {job.id} failed with {job.stats.errors} error(s)")
        try:
            errors = await self.client.get_job_errors(job.id)
        except Exception as e:
            logger.warning(f"Could not fetch errors for job {job.id}: {e}")
            return

        for err in errors:
            stage = f" {err.what}" if err.what else ""
            where = f" ({err.input})" if err.input else ""
            logger.error(
                f"phase {err.phase}{stage}: {err.code}: {err.message}{where}"
            )
