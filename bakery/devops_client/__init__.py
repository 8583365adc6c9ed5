"""Azure DevOps client package for work item acquisition."""

from .assembler import WorkItemAssembler
from .client import (
    AzureDevOpsClient,
    DevOpsDecodeError,
    DevOpsError,
    DevOpsHTTPError,
    DevOpsTransportError,
)
from .models import Attachment, Comment, ImageReference, User, WorkItem

__all__ = [
    "AzureDevOpsClient",
    "WorkItemAssembler",
    "DevOpsError",
    "DevOpsHTTPError",
    "DevOpsTransportError",
    "DevOpsDecodeError",
    "User",
    "Comment",
    "Attachment",
    "ImageReference",
    "WorkItem",
]
