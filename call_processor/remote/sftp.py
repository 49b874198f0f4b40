"""SFTP implementation of the remote file server interface.

Uses asyncssh for key or password authenticated sessions. The connector
reads its configuration from environment variables when not passed
explicitly:
    SFTP_HOST, SFTP_PORT, SFTP_USERNAME, SFTP_PRIVATE_KEY_PATH,
    SFTP_PASSPHRASE, SFTP_PASSWORD, SFTP_KNOWN_HOSTS
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator

import asyncssh

from call_processor.remote.interface import (
    RemoteFileConnector,
    RemoteFileSession,
    RemoteFileStat,
)
from call_processor.utils.errors import (
    ConfigurationError,
    RemoteConnectionError,
    RemoteReadError,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 22
DEFAULT_KEY_PATH = "~/.ssh/sftp_key"
KEEPALIVE_INTERVAL_SECONDS = 30
KEEPALIVE_COUNT_MAX = 10


class SftpSession(RemoteFileSession):
    """An open SSH connection with its SFTP subsystem client."""

    def __init__(
        self,
        connection: asyncssh.SSHClientConnection,
        sftp: asyncssh.SFTPClient,
        host: str | None = None,
    ) -> None:
        self._connection = connection
        self._sftp = sftp
        self._host = host
        self._closed = False

    async def stat(self, path: str) -> RemoteFileStat | None:
        try:
            attrs = await self._sftp.stat(path)
        except asyncssh.SFTPNoSuchFile:
            return None
        except (
            asyncssh.SFTPConnectionLost,
            asyncssh.SFTPNoConnection,
            asyncssh.DisconnectError,
            OSError,
        ) as exc:
            raise RemoteConnectionError(
                f"SFTP session lost during stat of '{path}': {exc}",
                host=self._host,
            ) from exc
        except asyncssh.SFTPError as exc:
            raise RemoteReadError(
                f"Stat failed for '{path}': {exc}", path=path
            ) from exc
        return RemoteFileStat(path=path, size=attrs.size or 0)

    async def read_chunks(self, path: str, chunk_size: int) -> AsyncIterator[bytes]:
        try:
            async with self._sftp.open(path, "rb") as handle:
                while True:
                    chunk = await handle.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk
        except (asyncssh.SFTPError, asyncssh.Error, OSError) as exc:
            raise RemoteReadError(
                f"Stream failed for '{path}': {exc}", path=path
            ) from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._sftp.exit()
        self._connection.close()
        await self._connection.wait_closed()


class SftpConnector(RemoteFileConnector):
    """Opens asyncssh SFTP sessions against the dialler's file server."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        private_key_path: str | None = None,
        passphrase: str | None = None,
        password: str | None = None,
        known_hosts: str | None = None,
    ) -> None:
        self.host = host or os.environ.get("SFTP_HOST", "")
        self.port = port or int(os.environ.get("SFTP_PORT", DEFAULT_PORT))
        self.username = username or os.environ.get("SFTP_USERNAME", "")
        self.private_key_path = os.path.expanduser(
            private_key_path
            or os.environ.get("SFTP_PRIVATE_KEY_PATH", DEFAULT_KEY_PATH)
        )
        self.passphrase = passphrase or os.environ.get("SFTP_PASSPHRASE") or None
        self.password = password or os.environ.get("SFTP_PASSWORD") or None
        self.known_hosts = known_hosts or os.environ.get("SFTP_KNOWN_HOSTS") or None

        if not self.host:
            raise ConfigurationError("SFTP_HOST is required", setting="SFTP_HOST")
        if not self.username:
            raise ConfigurationError(
                "SFTP_USERNAME is required", setting="SFTP_USERNAME"
            )

    def _client_keys(self) -> list[str] | None:
        if os.path.exists(self.private_key_path):
            return [self.private_key_path]
        if self.password:
            return None
        raise ConfigurationError(
            f"SFTP private key not found at {self.private_key_path} "
            "and no SFTP_PASSWORD set",
            setting="SFTP_PRIVATE_KEY_PATH",
        )

    async def connect(self) -> SftpSession:
        client_keys = self._client_keys()
        try:
            connection = await asyncssh.connect(
                self.host,
                port=self.port,
                username=self.username,
                client_keys=client_keys,
                passphrase=self.passphrase,
                password=self.password,
                known_hosts=self.known_hosts,
                keepalive_interval=KEEPALIVE_INTERVAL_SECONDS,
                keepalive_count_max=KEEPALIVE_COUNT_MAX,
                compression_algs=["none"],
            )
        except (OSError, asyncssh.Error) as exc:
            raise RemoteConnectionError(
                f"SFTP connection to {self.host}:{self.port} failed: {exc}",
                host=self.host,
            ) from exc

        try:
            sftp = await connection.start_sftp_client()
        except (OSError, asyncssh.Error) as exc:
            connection.close()
            raise RemoteConnectionError(
                f"SFTP subsystem failed on {self.host}: {exc}",
                host=self.host,
            ) from exc
        except BaseException:
            # Cancelled by a connect or sweep timeout before the session
            # took ownership of the connection.
            connection.close()
            raise

        logger.info("SFTP session ready on %s:%d", self.host, self.port)
        return SftpSession(connection, sftp, host=self.host)
