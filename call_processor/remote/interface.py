"""Abstract remote file server interface.

Defines the connector/session ABCs and the fetch data models. The
concrete SFTP implementation lives in call_processor.remote.sftp.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass


@dataclass
class RemoteFileStat:
    """Size information for an existing remote file."""

    path: str
    size: int


@dataclass
class FetchResult:
    """A fully buffered recording and its size bookkeeping.

    verified_size always equals declared_size: results that fail the
    check are discarded by the fetcher and never constructed.
    """

    path: str
    data: bytes
    declared_size: int
    verified_size: int

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class RemoteFileSession(ABC):
    """An authenticated session on the remote file server.

    Sessions are async context managers; leaving the block closes the
    session and any open stream handle.
    """

    @abstractmethod
    async def stat(self, path: str) -> RemoteFileStat | None:
        """Return size information for path, or None if it does not exist.

        Raises:
            RemoteReadError: The server refused the probe for this path.
            RemoteConnectionError: The session dropped.
        """

    @abstractmethod
    def read_chunks(self, path: str, chunk_size: int) -> AsyncIterator[bytes]:
        """Stream the file at path in chunks of at most chunk_size bytes.

        Raises:
            RemoteReadError: If the stream fails part way through.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the session and its underlying connection."""

    async def __aenter__(self) -> RemoteFileSession:
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()


class RemoteFileConnector(ABC):
    """Factory for remote file server sessions."""

    @abstractmethod
    async def connect(self) -> RemoteFileSession:
        """Open an authenticated session.

        Raises:
            RemoteConnectionError: If the session cannot be established.
        """
