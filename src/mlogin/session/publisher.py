"""
Config publisher: uploads the one-time credential the remote agent reads
to find its way back to the session channel.
"""

import uuid

from pydantic import BaseModel, ConfigDict, Field

from mlogin.config import CONFIG_COPIES, SIGNED_URL_EXPIRY
from mlogin.errors import SetupError
from mlogin.logger import get_logger
from mlogin.session.state import Session
from mlogin.store.base import StoreClient

logger = get_logger(__name__)


class ConfigObject(BaseModel):
    """Payload of the uploaded config object, read once by the agent."""

    model_config = ConfigDict(populate_by_name=True)

    callback_url: str = Field(alias="callbackURL")
    insecure_transport: bool = Field(default=False, alias="insecureTransport")


class ConfigPublisher:
    """
    Builds and uploads the session config object.

    The object name is fixed at construction from a fresh uuid, because the
    job descriptor references it as an asset before it is uploaded.
    """

    def __init__(
        self,
        session: Session,
        client: StoreClient,
        insecure: bool = False,
        expires: int = SIGNED_URL_EXPIRY,
    ):
        self.session = session
        self.client = client
        self.insecure = insecure
        self.expires = expires
        self.key = f"/{client.user}/stor/medusa-config-{uuid.uuid4()}.json"

    def attach_path(self, job_id: str) -> str:
        """Private endpoint the agent uses to attach to the channel."""
        return f"/{self.client.user}/medusa/attach/{job_id}/storage"

    async def build(self) -> ConfigObject:
        if self.session.job_id is None:
            raise SetupError("cannot publish the session config before the job exists")
        url = await self.client.sign_url(
            self.attach_path(self.session.job_id), method="GET", expires=self.expires
        )
        return ConfigObject(callback_url=url, insecure_transport=self.insecure)

    async def publish(self) -> str:
        """Upload the config object and record its key on the session."""
        config = await self.build()
        await self.client.put_object(
            self.key,
            config.model_dump_json(by_alias=True).encode("utf-8"),
            content_type="application/json",
            copies=CONFIG_COPIES,
        )
        self.session.config_key = self.key
        logger.debug(f"Published session config to {self.key}")
        return self.key
