"""Azure DevOps REST API client using httpx."""

import base64
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from .. import __version__
from .models import CommentPayload, WorkItemPayload

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://dev.azure.com"
DEFAULT_API_VERSION = "7.1"
REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class DevOpsError(Exception):
    """Base class for Azure DevOps client failures."""


class DevOpsTransportError(DevOpsError):
    """The request never produced a response (DNS, connect, timeout...)."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(
            f"Failed to connect to Azure DevOps API: {reason}. Check your network "
            f"connection and organization URL. (URL: {url})"
        )


class DevOpsHTTPError(DevOpsError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, url: str, body: str = "", reason: str = ""):
        self.status_code = status_code
        self.url = url
        self.body = body
        if body:
            message = f"HTTP {status_code} - {body} (URL: {url})"
        else:
            message = f"HTTP {status_code} {reason or 'Unknown Error'} (URL: {url})"
        super().__init__(message)


class DevOpsDecodeError(DevOpsError):
    """The server answered 2xx but the payload could not be decoded."""

    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(f"Invalid response payload from {url}: {reason}")


@dataclass
class DownloadedFile:
    """Binary resource fetched from Azure DevOps."""

    content_type: str
    size: int
    content: bytes


class AzureDevOpsClient:
    """Authenticated reads against the Azure DevOps work item API.

    Every request carries the PAT as HTTP Basic credentials with an empty
    user name and is bounded by a 30 second timeout. Nothing is retried.
    """

    def __init__(
        self,
        organization: str,
        pat_token: str,
        project: str = "",
        base_url: str = DEFAULT_BASE_URL,
        api_version: str = DEFAULT_API_VERSION,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            organization: Azure DevOps organization name
            pat_token: Personal Access Token
            project: Project name (informational, work item ids are org-wide)
            base_url: Service root, without trailing slash
            api_version: REST API version sent with every call
            transport: Optional httpx transport (used by tests)
        """
        if not pat_token:
            raise ValueError("Azure DevOps PAT token is required.")

        self.organization = organization
        self.project = project
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.headers = {
            "Authorization": f"Basic {self._encode_pat(pat_token)}",
            "User-Agent": f"bakery/{__version__}",
        }
        self.http = httpx.Client(
            headers=self.headers,
            timeout=REQUEST_TIMEOUT_SECONDS,
            follow_redirects=True,
            transport=transport,
        )

    def __enter__(self) -> "AzureDevOpsClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self.http.close()

    @staticmethod
    def _encode_pat(pat_token: str) -> str:
        return base64.b64encode(f":{pat_token}".encode()).decode("ascii")

    def work_item_url(self, work_item_id: int, expand_relations: bool = False) -> str:
        url = (
            f"{self.base_url}/{self.organization}/_apis/wit/workitems/"
            f"{work_item_id}?api-version={self.api_version}"
        )
        if expand_relations:
            url += "&$expand=Relations"
        return url

    def comments_url(self, work_item_id: int) -> str:
        return (
            f"{self.base_url}/{self.organization}/_apis/wit/workItems/"
            f"{work_item_id}/comments?api-version={self.api_version}"
        )

    def _get(self, url: str, accept_json: bool = True) -> httpx.Response:
        """Issue a GET, converting transport failures into DevOpsTransportError."""
        headers = {"Accept": "application/json"} if accept_json else None
        logger.debug("Making request to: %s", url)
        try:
            return self.http.get(url, headers=headers)
        except httpx.TransportError as e:
            logger.error("Failed to connect to Azure DevOps API: %s", e)
            raise DevOpsTransportError(url, str(e) or type(e).__name__) from e

    def fetch_item(
        self, work_item_id: int, expand_relations: bool = False
    ) -> WorkItemPayload:
        """Fetch the raw work item payload.

        Args:
            work_item_id: Work item id
            expand_relations: Request relation data with ``$expand=Relations``

        Returns:
            Parsed work item payload

        Raises:
            DevOpsTransportError: The request failed before a response
            DevOpsHTTPError: Non-2xx response
            DevOpsDecodeError: Malformed JSON or unexpected shape
        """
        url = self.work_item_url(work_item_id, expand_relations)
        response = self._get(url)

        if not response.is_success:
            error = DevOpsHTTPError(
                response.status_code,
                url,
                body=response.text.strip(),
                reason=response.reason_phrase,
            )
            logger.error("Azure DevOps API error: %s", error)
            raise error

        try:
            return WorkItemPayload.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise DevOpsDecodeError(url, str(e)) from e

    def fetch_comments(self, work_item_id: int) -> list[CommentPayload]:
        """Fetch every comment of a work item, following continuation tokens.

        A non-2xx answer means the comments are unavailable (commonly a
        permission issue) and yields what was collected so far, which is an
        empty list when the first page is refused.

        Raises:
            DevOpsTransportError: The request failed before a response
        """
        base_url = self.comments_url(work_item_id)
        url = base_url
        comments: list[CommentPayload] = []

        while True:
            response = self._get(url)
            if not response.is_success:
                logger.debug(
                    "No comments available for work item %s or insufficient "
                    "permissions (HTTP %s)",
                    work_item_id,
                    response.status_code,
                )
                return comments

            try:
                data = response.json()
            except ValueError as e:
                logger.warning(
                    "Could not decode comments for work item %s: %s", work_item_id, e
                )
                return comments
            if not isinstance(data, dict):
                return comments

            for raw_comment in data.get("value") or []:
                try:
                    comments.append(CommentPayload.model_validate(raw_comment))
                except ValidationError as e:
                    logger.warning("Skipping malformed comment: %s", e)

            token = data.get("continuationToken")
            if not token:
                return comments
            url = f"{base_url}&continuationToken={quote(str(token))}"

    def download_bytes(self, url: str) -> DownloadedFile:
        """Download a binary resource with the same credentials.

        Raises:
            DevOpsTransportError: The request failed before a response
            DevOpsHTTPError: Non-2xx response
        """
        logger.debug("Downloading %s", url)
        response = self._get(url, accept_json=False)

        if not response.is_success:
            raise DevOpsHTTPError(
                response.status_code, url, reason=response.reason_phrase
            )

        content = response.content
        content_type = response.headers.get("content-type", DEFAULT_CONTENT_TYPE)
        content_length = response.headers.get("content-length")
        try:
            size = int(content_length) if content_length else len(content)
        except ValueError:
            size = len(content)

        return DownloadedFile(content_type=content_type, size=size, content=content)
