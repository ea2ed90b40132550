"""HTTP client for a remote kv_jobs admin API."""

from typing import Any, Dict, List, Optional

import aiohttp

from kv_jobs.errors import AuthTokenError, RemoteHttpError


class QueueHttpClient:
    """HTTP client for calling the routes from ``create_queue_router``."""

    def __init__(
        self,
        base_url: str,
        auth_token: Optional[str] = None,
        timeout: float = 5.0,
    ):
        """
        Initialize HTTP client.

        Args:
            base_url: Base URL the queue router is mounted under
                (e.g., "https://admin.internal")
            auth_token: Optional auth token for X-Kv-Jobs-Token header
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["X-Kv-Jobs-Token"] = self.auth_token
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}/queue{path}"

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            try:
                async with session.request(
                    method, url, json=json_body, params=params, headers=self._headers()
                ) as resp:
                    response_body = await resp.text()

                    if resp.status == 401:
                        raise AuthTokenError(
                            f"Auth token rejected by {self.base_url}"
                        )

                    if resp.status == 404:
                        raise RemoteHttpError(
                            status_code=404,
                            message="Not found",
                            response_body=response_body,
                        )

                    if resp.status >= 400:
                        raise RemoteHttpError(
                            status_code=resp.status,
                            message=f"Failed to {action}: {response_body}",
                            response_body=response_body,
                        )

                    return await resp.json()

            except aiohttp.ClientError as e:
                raise RemoteHttpError(
                    status_code=0,
                    message=f"Network error: {str(e)}",
                ) from e

    async def dispatch(
        self,
        type: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        queue: Optional[str] = None,
        delay: int = 0,
        retries: Optional[int] = None,
        timeout: Optional[int] = None,
    ) -> str:
        """
        Dispatch a job via HTTP API.

        Returns:
            Job ID

        Raises:
            RemoteHttpError: If the HTTP request fails
        """
        request_body: Dict[str, Any] = {
            "type": type,
            "payload": payload or {},
            "delay": delay,
        }
        if queue:
            request_body["queue"] = queue
        if retries is not None:
            request_body["retries"] = retries
        if timeout is not None:
            request_body["timeout"] = timeout

        response_data = await self._request(
            "POST", "/dispatch", "dispatch job", json_body=request_body
        )
        return response_data["job_id"]

    async def get_job(self, job_id: str) -> Dict[str, Any]:
        """Get job details by ID."""
        return await self._request("GET", f"/jobs/{job_id}", "get job")

    async def get_stats(self) -> Dict[str, Any]:
        """Get per-queue statistics."""
        return await self._request("GET", "/stats", "get stats")

    async def list_failed(self, limit: int = 50) -> List[Dict[str, Any]]:
        return await self._request(
            "GET", "/failed", "list failed jobs", params={"limit": limit}
        )

    async def retry_job(self, job_id: str) -> bool:
        """Retry a failed job; a 409 (job not failed) returns False."""
        try:
            await self._request("POST", f"/jobs/{job_id}/retry", "retry job")
        except RemoteHttpError as e:
            if e.status_code == 409:
                return False
            raise
        return True

    async def cancel_job(self, job_id: str) -> bool:
        """Cancel a job; a 409 (already finished) returns False."""
        try:
            await self._request("POST", f"/jobs/{job_id}/cancel", "cancel job")
        except RemoteHttpError as e:
            if e.status_code == 409:
                return False
            raise
        return True

    async def retry_failed(self) -> int:
        data = await self._request("POST", "/retry-failed", "retry failed jobs")
        return data.get("count") or 0

    async def clear_queues(self) -> int:
        data = await self._request("DELETE", "/clear", "clear queues")
        return data.get("count") or 0

    async def get_worker_status(self) -> Dict[str, Any]:
        """Whether the server's background worker loop is still running."""
        return await self._request("GET", "/worker", "get worker status")
