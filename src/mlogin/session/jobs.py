"""
Job lifecycle: create the session job, feed its input and cancel it.
"""

from dataclasses import dataclass

from mlogin.config import AGENT_ASSET, JOB_NAME
from mlogin.logger import get_logger
from mlogin.session.state import Session
from mlogin.store.base import StoreClient
from mlogin.store.models import JobPhase, JobSpec

logger = get_logger(__name__)


@dataclass
class JobOptions:
    """Resource hints passed through to the job phase unchanged."""

    memory: int | None = None
    disk: int | None = None
    init: str | None = None
    image: str | None = None


class JobLifecycleManager:
    """Creates, feeds and cancels the job backing a session."""

    def __init__(self, session: Session, client: StoreClient):
        self.session = session
        self.client = client

    def build_spec(self, config_key: str, options: JobOptions | None = None) -> JobSpec:
        """
        Build the single-phase job descriptor.

        The phase runs the bootstrap agent shipped as an asset. A session
        bound to an object runs as a ``map`` phase over that object; a
        keyless session runs as a ``reduce`` phase with no input.

        Args:
            config_key: Path of the session config object; shipped as an
                asset so the agent can find its callback URL.
            options: Optional resource hints.
        """
        options = options or JobOptions()
        phase = JobPhase(
            type="reduce" if self.session.keyless else "map",
            exec=f"/assets{AGENT_ASSET}",
            assets=[AGENT_ASSET, config_key],
            memory=options.memory,
            disk=options.disk,
            init=options.init,
            image=options.image,
        )
        return JobSpec(name=JOB_NAME, phases=[phase])

    async def create(self, config_key: str, options: JobOptions | None = None) -> str:
        """Submit the session job and arm its cancellation on teardown."""
        job_id = await self.client.create_job(self.build_spec(config_key, options))
        self.session.job_id = job_id
        self.session.cancel_requested = True
        logger.info(f"Created job {job_id}")
        return job_id

    async def attach_input(self, job_id: str, path: str | None) -> None:
        if path is None:
            logger.debug("Keyless session, no input to add")
            return
        await self.client.add_job_inputs(job_id, [path])
        logger.debug(f"Added {path} to job {job_id}")

    async def close_input(self, job_id: str) -> None:
        if self.session.keyless:
            return
        await self.client.end_job_input(job_id)
        logger.debug(f"Closed input for job {job_id}")

    async def cancel(self, job_id: str) -> None:
        await self.client.cancel_job(job_id)
        logger.debug(f"Cancelled job {job_id}")
