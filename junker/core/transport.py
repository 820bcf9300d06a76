"""
JUNKER Raw Request Transport

Sends one pre-built request over a fresh connection and returns the raw,
unparsed response bytes. No HTTP library sits between the scanner and the
socket: the mutated headers must reach the target byte-for-byte, and a
malformed response must come back as data rather than a parse error.

Rules:
- One connection per request (reuse would contaminate framing state)
- TLS without certificate verification for https targets
- Read until the peer closes, racing a deadline; on expiry the read is
  cancelled, the socket is aborted and TransportTimeout is raised
"""

import asyncio
import ipaddress
import logging
import ssl
from typing import Optional

from .errors import TransportError, TransportTimeout

logger = logging.getLogger(__name__)


def insecure_ssl_context() -> ssl.SSLContext:
    """TLS context that accepts any certificate"""
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def _sni_name(server_name: Optional[str]) -> Optional[str]:
    """SNI is only sent for host names, never for IP literals"""
    if not server_name:
        return None
    try:
        ipaddress.ip_address(server_name)
    except ValueError:
        return server_name
    return None


class RawTransport:
    """
    Raw socket transport.

    Usage:
        transport = RawTransport()
        raw = await transport.send("93.184.216.34", 443, request, "https", 5.0,
                                   server_name="example.com")
    """

    def __init__(self, max_response_size: Optional[int] = None):
        self.max_response_size = max_response_size
        self._ssl_context = insecure_ssl_context()

    async def send(
        self,
        ip: str,
        port: int,
        request: bytes,
        scheme: str = "http",
        timeout: float = 5.0,
        server_name: Optional[str] = None,
    ) -> bytes:
        """Write ``request`` to ip:port and read the full response"""
        use_ssl = scheme == "https"

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(
                    ip,
                    port,
                    ssl=self._ssl_context if use_ssl else None,
                    server_hostname=_sni_name(server_name) if use_ssl else None,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"connect to {ip}:{port} timed out") from e
        except OSError as e:
            raise TransportError(f"connect to {ip}:{port} failed: {e}") from e

        try:
            try:
                writer.write(request)
                await writer.drain()
            except OSError as e:
                raise TransportError(f"write to {ip}:{port} failed: {e}") from e

            try:
                response = await asyncio.wait_for(self._read_all(reader), timeout=timeout)
            except asyncio.TimeoutError as e:
                # Drop the connection instead of a graceful TLS shutdown
                writer.transport.abort()
                raise TransportTimeout(
                    f"no complete response from {ip}:{port} within {timeout}s"
                ) from e
            except OSError as e:
                raise TransportError(f"read from {ip}:{port} failed: {e}") from e

            return response
        finally:
            await self._close(writer)

    async def _read_all(self, reader: asyncio.StreamReader) -> bytes:
        """Read until EOF, keeping at most max_response_size bytes"""
        if self.max_response_size is None:
            return await reader.read(-1)

        chunks = []
        size = 0
        while True:
            chunk = await reader.read(65536)
            if not chunk:
                break
            if size < self.max_response_size:
                chunks.append(chunk[: self.max_response_size - size])
            size += len(chunk)
        return b"".join(chunks)

    @staticmethod
    async def _close(writer: asyncio.StreamWriter) -> None:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug("Error closing connection: %s", e)
