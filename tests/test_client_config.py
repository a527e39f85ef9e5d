"""
test_client_config.py — Unit Tests for RPC Client and Metrics Config
======================================================================
"""

import pytest
from pydantic import ValidationError
from storage_node.metrics import MetricsConfig
from storage_node.rpc.addr import GrpcHttp2Addr, new_mem_pair, parse_addr
from storage_node.rpc.client_config import RpcClientConfig


class TestRpcClientConfig:
    """Tests for RpcClientConfig."""

    def test_defaults_are_unset(self):
        config = RpcClientConfig()
        assert config.collect() == {}

    def test_text_addresses_are_parsed(self):
        config = RpcClientConfig(store_addr="grpc://127.0.0.1:4402")
        assert isinstance(config.store_addr, GrpcHttp2Addr)

    def test_invalid_address_rejected(self):
        with pytest.raises(ValidationError, match="invalid addr"):
            RpcClientConfig(p2p_addr="tcp://nowhere")

    def test_channels_must_be_positive(self):
        with pytest.raises(ValidationError):
            RpcClientConfig(channels=0)

    def test_collect_only_set_fields(self):
        config = RpcClientConfig(
            store_addr=parse_addr("grpc://127.0.0.1:4402"),
            channels=2,
        )
        assert config.collect() == {
            "store_addr": "grpc://127.0.0.1:4402",
            "channels": 2,
        }

    def test_collect_writes_mem_as_text(self):
        """Memory addresses flatten to ``mem``."""
        client, _ = new_mem_pair()
        config = RpcClientConfig(gateway_addr=client)
        assert config.collect() == {"gateway_addr": "mem"}

    def test_mem_text_does_not_decode(self):
        """The flattened form of a memory address is rejected on decode."""
        client, _ = new_mem_pair()
        collected = RpcClientConfig(store_addr=client).collect()
        with pytest.raises(ValidationError, match="memory addresses"):
            RpcClientConfig.model_validate(collected)

    def test_collect_decodes_back(self):
        config = RpcClientConfig(
            gateway_addr="grpc://127.0.0.1:4400",
            store_addr="grpc:///run/store.sock",
        )
        assert RpcClientConfig.model_validate(config.collect()) == config


class TestMetricsConfig:
    """Tests for MetricsConfig."""

    def test_defaults(self):
        config = MetricsConfig()
        assert config.service_name == "unknown"
        assert config.service_env == "dev"
        assert config.export_metrics is False
        assert config.instance_id

    def test_defaults_compare_equal(self):
        assert MetricsConfig() == MetricsConfig()

    def test_with_build_info(self):
        config = MetricsConfig().with_build_info("abc123", "0.1.0")
        assert config.build == "abc123"
        assert config.version == "0.1.0"
        assert config.service_name == "unknown"

    def test_collect_round_trip(self):
        config = MetricsConfig(service_name="store", tracing=True)
        assert MetricsConfig.model_validate(config.collect()) == config
