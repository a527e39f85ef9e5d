"""
config.py — Storage Node Store Configuration
==============================================
Where the node's content database lives, how its store RPC endpoint is
addressed and how metrics are exported. A NodeStoreConfig is also a merge
source, so it serves as the defaults layer beneath a config file and
STORAGE_NODE_* environment variables.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from storage_node.core.errors import AddrParseError, ConfigError, UnsupportedAddrError
from storage_node.core.merge import insert_into_config_map, make_config
from storage_node.metrics import MetricsConfig
from storage_node.rpc.addr import (
    GrpcHttp2Addr,
    GrpcUdsAddr,
    MemAddr,
    StoreClientAddr,
    StoreServerAddr,
    parse_addr,
)
from storage_node.rpc.client_config import RpcClientConfig

logger = logging.getLogger(__name__)

# Optional config file, looked up in the node's home directory.
CONFIG_FILE_NAME = "store.config.toml"
# STORAGE_NODE_PATH=/data/store sets `path`;
# STORAGE_NODE_RPC_CLIENT__STORE_ADDR sets `rpc_client.store_addr`.
ENV_PREFIX = "STORAGE_NODE"
DEFAULT_GRPC_ADDR = "grpc://0.0.0.0:4402"


class NodeStoreConfig(BaseModel):
    """The configuration for the store."""

    model_config = ConfigDict(frozen=True)

    path: Path  # location of the content database
    rpc_client: RpcClientConfig = Field(default_factory=RpcClientConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @classmethod
    def new_with_rpc(cls, path, client_addr: StoreClientAddr) -> "NodeStoreConfig":
        return cls(
            path=Path(path),
            rpc_client=RpcClientConfig(store_addr=client_addr),
            metrics=MetricsConfig(),
        )

    @classmethod
    def new_grpc(cls, path) -> "NodeStoreConfig":
        """Store listening for gRPC on all interfaces, port 4402."""
        try:
            addr = parse_addr(DEFAULT_GRPC_ADDR)
        except AddrParseError as e:
            raise AssertionError(
                f"default store address {DEFAULT_GRPC_ADDR!r} must parse"
            ) from e
        return cls.new_with_rpc(path, addr)

    def server_rpc_addr(self) -> Optional[StoreServerAddr]:
        """
        Derive the server listen address from the client store address.

        Returns:
            None if no store address is configured, otherwise the address
            the store service should listen on.

        Raises:
            UnsupportedAddrError: For memory addresses, which have no
                                  listening endpoint to derive.
        """
        addr = self.rpc_client.store_addr
        if addr is None:
            return None
        if isinstance(addr, GrpcHttp2Addr):
            return GrpcHttp2Addr(addr.ip, addr.port)
        if isinstance(addr, GrpcUdsAddr):
            return GrpcUdsAddr(addr.path)
        if isinstance(addr, MemAddr):
            raise UnsupportedAddrError("can not derive rpc_addr for mem addr")
        raise TypeError(f"Unknown address variant: {type(addr).__name__}")

    def clone_into_box(self) -> "NodeStoreConfig":
        return self.model_copy(deep=True)

    def collect(self) -> Dict[str, Any]:
        """
        Flatten into a config map keyed by path, rpc_client and metrics.

        Raises:
            ConfigError: If the path cannot be represented as text.
        """
        path = str(self.path)
        try:
            path.encode("utf-8")
        except UnicodeEncodeError as e:
            raise ConfigError("No `path` set. Path is required.") from e

        config_map: Dict[str, Any] = {}
        insert_into_config_map(config_map, "path", path)
        insert_into_config_map(config_map, "rpc_client", self.rpc_client.collect())
        insert_into_config_map(config_map, "metrics", self.metrics.collect())
        return config_map


def load_config(
    default: NodeStoreConfig,
    config_files: Iterable = (),
    overrides: Optional[Mapping[str, Any]] = None,
) -> NodeStoreConfig:
    """
    Layer defaults, config files, environment and overrides.

    Args:
        default: Lowest-priority layer.
        config_files: Candidate store.config.toml paths; missing ones are skipped.
        overrides: Dotted keys applied last, e.g. ``{"path": "/data/store"}``
                   from command-line flags.

    Returns:
        The merged NodeStoreConfig.

    Raises:
        ConfigError: If a layer is unreadable or the merged values are invalid.
    """
    config = make_config(
        NodeStoreConfig,
        default,
        config_files=config_files,
        env_prefix=ENV_PREFIX,
        overrides=overrides,
    )
    logger.debug("Store config loaded (path=%s)", config.path)
    return config
