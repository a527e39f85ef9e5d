"""
addr.py — RPC Address Variants
================================
Endpoint descriptors used to reach (client) or listen on (server) a node's
RPC services.

Variants:
    GrpcHttp2Addr   — gRPC over an IP socket       (grpc://0.0.0.0:4402)
    GrpcUdsAddr     — gRPC over a unix socket      (grpc:///run/store.sock)
    MemAddr         — in-process channel handle    (mem, never serialized)
"""

import ipaddress
import itertools
import logging
from pathlib import Path
from typing import Tuple, Union

from storage_node.core.errors import AddrParseError

logger = logging.getLogger(__name__)

GRPC_SCHEME = "grpc://"
MEM_ADDR = "mem"

_channel_ids = itertools.count(1)


class Addr:
    """Base of the closed set of RPC address variants."""

    __slots__ = ()


class GrpcHttp2Addr(Addr):
    """gRPC over HTTP/2 on an IP socket address."""

    __slots__ = ("ip", "port")

    def __init__(self, ip, port: int):
        self.ip = ipaddress.ip_address(ip)
        if not 0 <= port <= 65535:
            raise AddrParseError(f"Port out of range: {port}")
        self.port = port

    def __eq__(self, other):
        if not isinstance(other, GrpcHttp2Addr):
            return NotImplemented
        return self.ip == other.ip and self.port == other.port

    def __hash__(self):
        return hash((GrpcHttp2Addr, self.ip, self.port))

    def __str__(self):
        if self.ip.version == 6:
            return f"{GRPC_SCHEME}[{self.ip}]:{self.port}"
        return f"{GRPC_SCHEME}{self.ip}:{self.port}"

    def __repr__(self):
        return f"GrpcHttp2Addr({str(self)!r})"


class GrpcUdsAddr(Addr):
    """
    gRPC over a unix domain socket.

    A path that reads as ``ip:port`` renders to text that parses back as
    a GrpcHttp2Addr; socket addresses take precedence when parsing.
    """

    __slots__ = ("path",)

    def __init__(self, path):
        self.path = Path(path)

    def __eq__(self, other):
        if not isinstance(other, GrpcUdsAddr):
            return NotImplemented
        return self.path == other.path

    def __hash__(self):
        return hash((GrpcUdsAddr, self.path))

    def __str__(self):
        return f"{GRPC_SCHEME}{self.path}"

    def __repr__(self):
        return f"GrpcUdsAddr({str(self)!r})"


class MemChannel:
    """
    In-process channel shared by a client and a server living in the
    same process. Only its identity matters to configuration.
    """

    __slots__ = ("channel_id",)

    def __init__(self):
        self.channel_id = next(_channel_ids)

    def __repr__(self):
        return f"MemChannel(#{self.channel_id})"


class MemAddr(Addr):
    """
    In-process address. Both sides hold the same channel handle, so
    there is nothing to bind and nothing to write into a config file.
    """

    __slots__ = ("channel",)

    def __init__(self, channel: MemChannel):
        self.channel = channel

    def __eq__(self, other):
        if not isinstance(other, MemAddr):
            return NotImplemented
        return self.channel is other.channel

    def __hash__(self):
        return hash((MemAddr, id(self.channel)))

    def __copy__(self):
        return MemAddr(self.channel)

    def __deepcopy__(self, memo):
        # The channel is a live handle; copies keep pointing at it.
        return MemAddr(self.channel)

    def __str__(self):
        return MEM_ADDR

    def __repr__(self):
        return f"MemAddr({self.channel!r})"


# Client- and server-facing addresses share the same variants.
StoreClientAddr = Addr
StoreServerAddr = Addr

AddrVariant = Union[GrpcHttp2Addr, GrpcUdsAddr, MemAddr]


def _parse_socket_addr(text: str) -> GrpcHttp2Addr:
    """
    Parse ``ip:port`` (``[ip]:port`` for IPv6) into a GrpcHttp2Addr.

    Raises:
        ValueError: If text is not an IP socket address.
    """
    host, sep, port = text.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Not a socket address: {text}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
        if ipaddress.ip_address(host).version != 6:
            raise ValueError(f"Not a socket address: {text}")
    elif ":" in host:
        raise ValueError(f"IPv6 socket addresses need brackets: {text}")
    return GrpcHttp2Addr(host, int(port))


def parse_addr(text: str) -> AddrVariant:
    """
    Parse the text form of an RPC address.

    Args:
        text: Address such as ``grpc://127.0.0.1:4402`` or
              ``grpc:///run/store.sock``.

    Returns:
        GrpcHttp2Addr for IP socket addresses, GrpcUdsAddr otherwise.

    Raises:
        AddrParseError: For ``mem`` and any string that is not a grpc address.
    """
    if text == MEM_ADDR:
        raise AddrParseError(
            "memory addresses can not be serialized or deserialized"
        )
    if text.startswith(GRPC_SCHEME):
        rest = text[len(GRPC_SCHEME):]
        if rest:
            try:
                return _parse_socket_addr(rest)
            except ValueError:
                logger.debug("Treating %s as a unix socket path", rest)
                return GrpcUdsAddr(rest)
    raise AddrParseError(f"invalid addr: {text}")


def new_mem_pair() -> Tuple[MemAddr, MemAddr]:
    """Create a (client, server) pair of memory addresses on one channel."""
    channel = MemChannel()
    return MemAddr(channel), MemAddr(channel)
