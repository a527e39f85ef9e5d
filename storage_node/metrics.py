"""
metrics.py — Metrics Configuration
====================================
Settings for metrics collection and trace export.
"""

import socket
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class MetricsConfig(BaseModel):
    """Metrics and tracing export settings."""

    model_config = ConfigDict(frozen=True)

    service_name: str = "unknown"
    instance_id: str = Field(default_factory=socket.gethostname)
    build: str = "unknown"
    version: str = "unknown"
    service_env: str = "dev"
    export_metrics: bool = False
    tracing: bool = False
    collector_endpoint: str = "http://localhost:4317"
    prom_gateway_endpoint: str = "http://localhost:9091"
    debug: bool = False

    def with_build_info(self, build: str, version: str) -> "MetricsConfig":
        """Return a copy stamped with the running build and version."""
        return self.model_copy(update={"build": build, "version": version})

    def collect(self) -> Dict[str, Any]:
        return self.model_dump()
