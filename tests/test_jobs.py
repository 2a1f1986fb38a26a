"""
Unit tests for the job lifecycle manager and the config publisher.
"""

import json

import pytest

from mlogin.config import AGENT_ASSET, JOB_NAME
from mlogin.errors import SetupError
from mlogin.session.jobs import JobLifecycleManager, JobOptions
from mlogin.session.publisher import ConfigPublisher

CONFIG_KEY = "/jill/stor/medusa-config-1.json"


class TestBuildSpec:
    """Test the job descriptor built for a session."""

    def test_object_session_is_map_phase(self, session, client):
        session.object_path = "/jill/stor/data.csv"
        spec = JobLifecycleManager(session, client).build_spec(CONFIG_KEY)

        assert spec.name == JOB_NAME
        assert len(spec.phases) == 1
        phase = spec.phases[0]
        assert phase.type == "map"
        assert phase.exec == f"/assets{AGENT_ASSET}"
        assert phase.assets == [AGENT_ASSET, CONFIG_KEY]

    def test_keyless_session_is_reduce_phase(self, session, client):
        spec = JobLifecycleManager(session, client).build_spec(CONFIG_KEY)
        assert spec.phases[0].type == "reduce"

    def test_resource_hints_pass_through(self, session, client):
        options = JobOptions(memory=4096, disk=16, init="apt-get update", image=">=21")
        phase = JobLifecycleManager(session, client).build_spec(CONFIG_KEY, options).phases[0]

        assert phase.memory == 4096
        assert phase.disk == 16
        assert phase.init == "apt-get update"
        assert phase.image == ">=21"

    def test_unset_hints_are_omitted(self, session, client):
        spec = JobLifecycleManager(session, client).build_spec(CONFIG_KEY)
        body = spec.model_dump(exclude_none=True)
        assert set(body["phases"][0]) == {"type", "exec", "assets"}


class TestLifecycle:
    """Test creating, feeding and cancelling the job."""

    @pytest.mark.asyncio
    async def test_create_records_job_and_arms_cancel(self, session, client):
        jobs = JobLifecycleManager(session, client)

        job_id = await jobs.create(CONFIG_KEY, JobOptions(memory=512))

        assert job_id == "job-123"
        assert session.job_id == "job-123"
        assert session.cancel_requested

    @pytest.mark.asyncio
    async def test_attach_input(self, session, client):
        session.object_path = "/jill/stor/data.csv"
        jobs = JobLifecycleManager(session, client)

        await jobs.attach_input("job-123", session.object_path)
        await jobs.close_input("job-123")

        client.add_job_inputs.assert_awaited_once_with("job-123", ["/jill/stor/data.csv"])
        client.end_job_input.assert_awaited_once_with("job-123")

    @pytest.mark.asyncio
    async def test_keyless_skips_input(self, session, client):
        jobs = JobLifecycleManager(session, client)

        await jobs.attach_input("job-123", None)
        await jobs.close_input("job-123")

        client.add_job_inputs.assert_not_awaited()
        client.end_job_input.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel(self, session, client):
        await JobLifecycleManager(session, client).cancel("job-123")
        client.cancel_job.assert_awaited_once_with("job-123")


class TestConfigPublisher:
    """Test the ConfigPublisher class."""

    def test_key_is_unique_per_session(self, session, client):
        first = ConfigPublisher(session, client).key
        second = ConfigPublisher(session, client).key

        assert first != second
        assert first.startswith("/jill/stor/medusa-config-")
        assert first.endswith(".json")

    def test_attach_path(self, session, client):
        publisher = ConfigPublisher(session, client)
        assert publisher.attach_path("job-123") == "/jill/medusa/attach/job-123/storage"

    @pytest.mark.asyncio
    async def test_refuses_before_job_exists(self, session, client):
        publisher = ConfigPublisher(session, client)

        with pytest.raises(SetupError):
            await publisher.publish()

        client.sign_url.assert_not_awaited()
        client.put_object.assert_not_awaited()
        assert session.config_key is None

    @pytest.mark.asyncio
    async def test_publish_uploads_signed_callback(self, session, client):
        session.job_id = "job-123"
        publisher = ConfigPublisher(session, client, insecure=True, expires=120)

        key = await publisher.publish()

        client.sign_url.assert_awaited_once_with(
            "/jill/medusa/attach/job-123/storage", method="GET", expires=120
        )
        args, kwargs = client.put_object.await_args
        assert args[0] == key
        assert json.loads(args[1]) == {
            "callbackURL": client.sign_url.return_value,
            "insecureTransport": True,
        }
        assert kwargs == {"content_type": "application/json", "copies": 1}
        assert session.config_key == key

    @pytest.mark.asyncio
    async def test_upload_failure_leaves_key_unset(self, session, client):
        session.job_id = "job-123"
        client.put_object.side_effect = RuntimeError("upload failed")
        publisher = ConfigPublisher(session, client)

        with pytest.raises(RuntimeError):
            await publisher.publish()

        assert session.config_key is None
