"""
client_config.py — RPC Client Configuration
=============================================
How a node's services are addressed for RPC purposes.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storage_node.core.merge import insert_into_config_map
from storage_node.rpc.addr import Addr, parse_addr


class RpcClientConfig(BaseModel):
    """Addresses of the gateway, p2p and store services."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    gateway_addr: Optional[Addr] = None
    p2p_addr: Optional[Addr] = None
    store_addr: Optional[Addr] = None
    channels: Optional[int] = Field(default=None, gt=0)  # connections per service

    @field_validator("gateway_addr", "p2p_addr", "store_addr", mode="before")
    @classmethod
    def parse_address(cls, v):
        """Accept addresses in their text form."""
        if isinstance(v, str):
            return parse_addr(v)
        return v

    def collect(self) -> Dict[str, Any]:
        """
        Flatten the set fields into a config map, addresses in text form.

        A memory address is written as ``mem``; it fails when the merged
        map is decoded, not here.
        """
        config_map: Dict[str, Any] = {}
        for key in ("gateway_addr", "p2p_addr", "store_addr"):
            addr = getattr(self, key)
            insert_into_config_map(config_map, key, str(addr) if addr else None)
        insert_into_config_map(config_map, "channels", self.channels)
        return config_map
