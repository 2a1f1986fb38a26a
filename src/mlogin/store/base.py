"""
Interface to the object store and job service.

Sessions only talk to the store through this narrow interface, so tests and
alternative backends can substitute their own implementation.
"""

from abc import ABC, abstractmethod
from typing import Any

from mlogin.store.models import Job, JobError, JobSpec, ObjectInfo


class StoreClient(ABC):
    """
    Abstract object-store client.

    Implementations perform path validation, object and job CRUD, and the
    signing of URLs and channel connections.
    """

    @property
    @abstractmethod
    def user(self) -> str:
        """Account that owns the session's job and objects."""

    @abstractmethod
    async def info(self, path: str) -> ObjectInfo:
        """
        Look up metadata for a path.

        Raises:
            ObjectNotFoundError: If nothing is stored at ``path``.
        """

    @abstractmethod
    async def put_object(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        copies: int = 2,
    ) -> None:
        """Store ``data`` at ``path`` with the given replication factor."""

    @abstractmethod
    async def delete_object(self, path: str) -> None:
        """
        Delete an object.

        Raises:
            ObjectNotFoundError: If the object is already gone.
        """

    @abstractmethod
    async def create_job(self, spec: JobSpec) -> str:
        """Submit a job and return its id."""

    @abstractmethod
    async def add_job_inputs(self, job_id: str, keys: list[str]) -> None:
        pass

    @abstractmethod
    async def end_job_input(self, job_id: str) -> None:
        pass

    @abstractmethod
    async def cancel_job(self, job_id: str) -> None:
        pass

    @abstractmethod
    async def get_job(self, job_id: str) -> Job:
        pass

    @abstractmethod
    async def get_job_errors(self, job_id: str) -> list[JobError]:
        pass

    @abstractmethod
    async def sign_url(self, path: str, method: str = "GET", expires: int = 300) -> str:
        """
        Produce a time-boxed URL granting access to ``path``.

        Args:
            path: Store path the URL points at.
            method: HTTP method the URL is valid for.
            expires: Lifetime in seconds.
        """

    @abstractmethod
    async def open_channel(self, path: str) -> Any:
        """
        Open an authenticated websocket to ``path``.

        Returns:
            A connection supporting ``send``, ``close`` and async iteration
            over received messages.
        """

    async def close(self) -> None:
        """Release any pooled connections."""
