"""GitHub contents API client.

Files are written with a read-modify-write cycle: GET the current file to
learn its blob sha, then PUT the new content keyed by that sha. A PUT against
a stale sha is rejected by GitHub (409/422); the cycle is then repeated once
with a fresh GET.
"""

import base64
import binascii
import time
from urllib.parse import quote

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import GitHubSettings
from .formatter import merge_csv
from .metrics import UPLOAD_CONFLICTS, UPLOAD_DURATION
from .models import ConnectionResult, RemoteFile, UploadResult
from .types import ContentsPutBody

logger = structlog.get_logger(__name__)


class GitHubError(Exception):
    """Base class for GitHub API failures."""


class GitHubAuthError(GitHubError):
    """Raised when the token is missing, invalid or lacks access."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"GitHub authentication failed (HTTP {status_code})")
        self.status_code = status_code


class GitHubAPIError(GitHubError):
    """Raised for non-success responses other than auth failures."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class GitHubConflictError(GitHubAPIError):
    """Raised when a write was keyed by a stale sha."""


class GitHubTransientError(GitHubAPIError):
    """Raised for responses worth retrying (5xx, 429)."""


class GitHubConnectionError(GitHubError):
    """Raised when GitHub could not be reached after all retries."""


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or "error"
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason_phrase or "error"


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if status < 400:
        return
    if status in (401, 403):
        raise GitHubAuthError(status)
    message = _error_message(response)
    if status == 409 or (status == 422 and "sha" in message.lower()):
        raise GitHubConflictError(status, message)
    if status == 429 or status >= 500:
        raise GitHubTransientError(status, message)
    raise GitHubAPIError(status, message)


def encode_path(path: str) -> str:
    """URL-quote each segment of a repository path, keeping the slashes."""
    return "/".join(quote(segment, safe="") for segment in path.strip("/").split("/"))


class GitHubContentsClient:
    """Reads and writes single files in one repository."""

    def __init__(self, settings: GitHubSettings) -> None:
        """Initialize the client.

        Args:
            settings: Repository coordinates, token and retry policy.
        """
        self._settings = settings

    @property
    def repo_url(self) -> str:
        s = self._settings
        return f"{s.api_url}/repos/{quote(s.owner, safe='')}/{quote(s.repo, safe='')}"

    def contents_url(self, path: str) -> str:
        return f"{self.repo_url}/contents/{encode_path(path)}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self._settings.token:
            headers["Authorization"] = f"token {self._settings.token}"
        return headers

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send one request, retrying transport errors and transient statuses.

        Raises:
            GitHubConnectionError: If GitHub stays unreachable.
            GitHubTransientError: If 5xx/429 responses persist.
        """
        try:
            async for attempt_state in AsyncRetrying(
                stop=stop_after_attempt(self._settings.max_retries),
                wait=wait_exponential(
                    multiplier=self._settings.retry_delay_seconds,
                    min=self._settings.retry_delay_seconds,
                    max=30,
                ),
                retry=retry_if_exception_type((httpx.TransportError, GitHubTransientError)),
                reraise=True,
            ):
                with attempt_state:
                    attempt = attempt_state.retry_state.attempt_number
                    async with httpx.AsyncClient(timeout=self._settings.timeout) as client:
                        response = await client.request(
                            method, url, headers=self._headers(), **kwargs
                        )
                    if response.status_code == 429 or response.status_code >= 500:
                        logger.warning(
                            "github_transient_error",
                            method=method,
                            status=response.status_code,
                            attempt=attempt,
                        )
                        _raise_for_status(response)
                    return response
        except httpx.TransportError as e:
            logger.error("github_unreachable", method=method, error=str(e))
            raise GitHubConnectionError(f"Failed to reach GitHub: {e}") from e
        raise AssertionError("unreachable")

    async def get_file(self, path: str) -> RemoteFile | None:
        """Fetch a file's sha and decoded text, or None if it doesn't exist."""
        params = {"ref": self._settings.branch} if self._settings.branch else None
        response = await self._request("GET", self.contents_url(path), params=params)
        if response.status_code == 404:
            return None
        _raise_for_status(response)

        data = response.json()
        if not isinstance(data, dict) or "sha" not in data:
            # A directory listing comes back as a list
            raise GitHubAPIError(response.status_code, f"'{path}' is not a file")

        content = ""
        if data.get("encoding") == "base64" and data.get("content"):
            try:
                content = base64.b64decode(data["content"]).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                raise GitHubAPIError(
                    response.status_code, f"'{path}' is not UTF-8 text: {e}"
                ) from e
        return RemoteFile(path=path, sha=data["sha"], content=content)

    async def put_file(
        self,
        path: str,
        content: str,
        message: str,
        sha: str | None = None,
    ) -> UploadResult:
        """Create or replace a file.

        Args:
            path: Repository path, folders may contain spaces.
            content: New file text.
            message: Commit message.
            sha: Blob sha of the file being replaced; None to create.
        """
        body: ContentsPutBody = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "committer": {
                "name": self._settings.committer_name,
                "email": self._settings.committer_email,
            },
        }
        if sha:
            body["sha"] = sha
        if self._settings.branch:
            body["branch"] = self._settings.branch

        response = await self._request("PUT", self.contents_url(path), json=body)
        _raise_for_status(response)

        data = response.json() if response.content else {}
        file_info = data.get("content") or {}
        commit_info = data.get("commit") or {}
        logger.info(
            "github_upload_status",
            path=path,
            status=response.status_code,
        )
        return UploadResult(
            path=path,
            status_code=response.status_code,
            created=response.status_code == 201,
            sha=file_info.get("sha"),
            commit_sha=commit_info.get("sha"),
        )

    async def upload(
        self,
        path: str,
        content: str,
        message: str,
        merge: bool = False,
    ) -> UploadResult:
        """Read-modify-write a file keyed by its current sha.

        Args:
            path: Repository path.
            content: New file text.
            message: Commit message.
            merge: Merge CSV rows of the existing file into ``content``.
        """
        started = time.perf_counter()
        try:
            for attempt in (1, 2):
                existing = await self.get_file(path)
                merged = merge and existing is not None and bool(existing.content)
                body = merge_csv(existing.content, content) if merged else content
                try:
                    result = await self.put_file(
                        path, body, message, sha=existing.sha if existing else None
                    )
                except GitHubConflictError:
                    if attempt == 2:
                        raise
                    UPLOAD_CONFLICTS.inc()
                    logger.warning("github_sha_conflict", path=path)
                    continue
                result.merged = merged
                return result
            raise AssertionError("unreachable")
        finally:
            UPLOAD_DURATION.observe(time.perf_counter() - started)

    async def test_connection(self) -> ConnectionResult:
        """Check that the repository is reachable with the configured token."""
        if not self._settings.owner or not self._settings.repo:
            return ConnectionResult(success=False, message="Owner and repo are required.")

        try:
            async with httpx.AsyncClient(timeout=self._settings.timeout) as client:
                response = await client.get(self.repo_url, headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning("github_connection_failed", error=str(e))
            return ConnectionResult(success=False, message=f"Failed: {e}")

        status = response.status_code
        if status == 200:
            message = "Success: Repo found."
        elif status == 404:
            message = "Failed: Repo not found."
        elif status == 401:
            message = "Failed: Unauthorized token."
        else:
            message = f"Failed: HTTP {status}."
        return ConnectionResult(success=status == 200, message=message, status_code=status)
