"""
Connector exports.
"""

from actualization.connectors.executor import (
    FileRefPayload,
    HTTPJobExecutorClient,
    JobExecutorService,
    JobSnapshotPayload,
)

__all__ = [
    "FileRefPayload",
    "HTTPJobExecutorClient",
    "JobExecutorService",
    "JobSnapshotPayload",
]
