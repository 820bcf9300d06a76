"""Shared fakes for the junker test suite. Nothing here touches the network."""

from typing import Callable, List, Optional, Sequence, Union
from urllib.parse import urlsplit

import pytest

from junker.core.mutations import build_catalog
from junker.core.types import SmuggleTest

OK = b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\nhello"
BAD_REQUEST = b"HTTP/1.1 400 Bad Request\r\nContent-Length: 0\r\n\r\n"
NOT_IMPLEMENTED = b"HTTP/1.1 501 Not Implemented\r\nContent-Length: 0\r\n\r\n"

Reply = Union[bytes, Exception]


class FakeTransport:
    """
    Scripted transport.

    Replies are consumed in order; an Exception reply is raised instead of
    returned. Alternatively ``responder`` maps each request to a reply.
    """

    def __init__(
        self,
        replies: Sequence[Reply] = (),
        responder: Optional[Callable[[bytes], Reply]] = None,
    ):
        self.replies: List[Reply] = list(replies)
        self.responder = responder
        self.calls = []

    async def send(self, ip, port, request, scheme="http", timeout=5.0, server_name=None):
        self.calls.append({
            "ip": ip, "port": port, "request": request,
            "scheme": scheme, "timeout": timeout, "server_name": server_name,
        })
        reply = self.responder(request) if self.responder else self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeLookup:
    """Name → addresses table standing in for DNS"""

    def __init__(self, table):
        self.table = table
        self.queried = []

    async def __call__(self, host):
        self.queried.append(host)
        return list(self.table.get(host, []))


@pytest.fixture
def two_catalog():
    """Smallest catalog that yields exactly one pair"""
    return build_catalog([
        ("id", "Content-Length: %s"),
        ("colon-prefix-space", "Content-Length : %s"),
    ])


@pytest.fixture
def make_test():
    def _make(url="http://example.com/login", ip="10.0.0.1", method="POST",
              mutations=("id", "colon-prefix-space")):
        return SmuggleTest(url=urlsplit(url), ip=ip, method=method, mutations=tuple(mutations))
    return _make
