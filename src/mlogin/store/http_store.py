"""
HTTP implementation of the store client.

REST calls go through a shared ``httpx.AsyncClient``; the session channel is
a websocket opened with ``websockets``. Requests are authenticated with a
bearer token, and URL signing is delegated to the service's ``sign``
endpoint so no credential material is handled locally.
"""

import json
import ssl
from typing import Any

import httpx
import websockets

from mlogin.errors import ObjectNotFoundError, StoreError
from mlogin.logger import get_logger
from mlogin.store.base import StoreClient
from mlogin.store.models import Job, JobError, JobSpec, ObjectInfo

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0
DIRECTORY_CONTENT_TYPE = "application/x-json-stream; type=directory"


class BearerAuth(httpx.Auth):
    """Attach a bearer token to every request."""

    def __init__(self, token: str):
        self.token = token

    def auth_flow(self, request: httpx.Request):
        request.headers["Authorization"] = f"Bearer {self.token}"
        yield request


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text.strip() or resp.reason_phrase
    if isinstance(body, dict):
        return body.get("message") or body.get("code") or str(body)
    return str(body)


class HttpStoreClient(StoreClient):
    """
    Store client speaking the object store's REST API.

    Args:
        url: Base URL of the service (``https://...``).
        user: Account name; prefixes every job and storage path.
        token: Optional bearer token.
        insecure: Skip TLS certificate verification.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        url: str,
        user: str,
        token: str | None = None,
        insecure: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url.rstrip("/")
        self._user = user
        self._token = token
        self.insecure = insecure
        self._http = httpx.AsyncClient(
            base_url=self.url,
            auth=BearerAuth(token) if token else None,
            verify=not insecure,
            timeout=DEFAULT_TIMEOUT,
            transport=transport,
        )

    @property
    def user(self) -> str:
        return self._user

    def _jobs_path(self, job_id: str | None = None) -> str:
        if job_id is None:
            return f"/{self._user}/jobs"
        return f"/{self._user}/jobs/{job_id}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        logger.debug(f"{method} {path}")
        try:
            resp = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {path}: {e}") from e

        if resp.status_code == 404:
            raise ObjectNotFoundError(path)
        if resp.is_error:
            raise StoreError(
                f"{method} {path}: {resp.status_code} {_error_detail(resp)}",
                status_code=resp.status_code,
            )
        return resp

    # ─── Objects ─────────────────────────────────────────────────────

    async def info(self, path: str) -> ObjectInfo:
        resp = await self._request("HEAD", path)
        content_type = resp.headers.get("content-type")
        if content_type == DIRECTORY_CONTENT_TYPE:
            return ObjectInfo(path=path, type="directory", content_type=content_type)

        size = resp.headers.get("content-length")
        return ObjectInfo(
            path=path,
            type="object",
            size=int(size) if size is not None else None,
            content_type=content_type,
        )

    async def put_object(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        copies: int = 2,
    ) -> None:
        await self._request(
            "PUT",
            path,
            content=data,
            headers={"content-type": content_type, "durability-level": str(copies)},
        )

    async def delete_object(self, path: str) -> None:
        await self._request("DELETE", path)

    # ─── Jobs ────────────────────────────────────────────────────────

    async def create_job(self, spec: JobSpec) -> str:
        resp = await self._request(
            "POST", self._jobs_path(), json=spec.model_dump(exclude_none=True)
        )
        location = resp.headers.get("location")
        if not location:
            raise StoreError("job service did not return a job location")
        return location.rstrip("/").rsplit("/", 1)[-1]

    async def add_job_inputs(self, job_id: str, keys: list[str]) -> None:
        await self._request(
            "POST",
            f"{self._jobs_path(job_id)}/live/in",
            content="\n".join(keys) + "\n",
            headers={"content-type": "text/plain"},
        )

    async def end_job_input(self, job_id: str) -> None:
        await self._request("POST", f"{self._jobs_path(job_id)}/live/in/end")

    async def cancel_job(self, job_id: str) -> None:
        await self._request("POST", f"{self._jobs_path(job_id)}/live/cancel")

    async def get_job(self, job_id: str) -> Job:
        resp = await self._request("GET", f"{self._jobs_path(job_id)}/live/status")
        try:
            return Job.model_validate(resp.json())
        except ValueError as e:
            raise StoreError(f"unreadable status for job {job_id}: {e}") from e

    async def get_job_errors(self, job_id: str) -> list[JobError]:
        resp = await self._request("GET", f"{self._jobs_path(job_id)}/live/err")
        errors = []
        for line in resp.text.splitlines():
            line = line.strip()
            if line:
                try:
                    errors.append(JobError.model_validate(json.loads(line)))
                except ValueError as e:
                    raise StoreError(
                        f"unreadable error record for job {job_id}: {e}"
                    ) from e
        return errors

    # ─── Signing and channels ────────────────────────────────────────

    async def sign_url(self, path: str, method: str = "GET", expires: int = 300) -> str:
        resp = await self._request(
            "POST",
            f"/{self._user}/sign",
            json={"path": path, "method": method, "expires": expires},
        )
        try:
            signed = resp.json().get("url")
        except (ValueError, AttributeError):
            signed = None
        if not signed:
            raise StoreError(f"signing service returned no URL for {path}")
        if signed.startswith("/"):
            signed = self.url + signed
        return signed

    def _channel_url(self, path: str) -> str:
        if self.url.startswith("https://"):
            return "wss://" + self.url[len("https://") :] + path
        if self.url.startswith("http://"):
            return "ws://" + self.url[len("http://") :] + path
        return self.url + path

    async def open_channel(self, path: str) -> Any:
        url = self._channel_url(path)
        kwargs: dict[str, Any] = {
            # keep-alive is handled by the session protocol's own ping frames
            "ping_interval": None,
        }
        if self._token:
            kwargs["additional_headers"] = {"Authorization": f"Bearer {self._token}"}
        if url.startswith("wss://") and self.insecure:
            ctx = ssl.create_default_context()
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
            kwargs["ssl"] = ctx

        logger.debug(f"Opening channel {url}")
        try:
            return await websockets.connect(url, **kwargs)
        except (OSError, websockets.exceptions.WebSocketException) as e:
            raise StoreError(f"cannot open channel {path}: {e}") from e

    async def close(self) -> None:
        await self._http.aclose()
