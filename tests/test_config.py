"""Tests for configuration models."""

import pytest
from pydantic import ValidationError

from mea_live.core.config import Config, ServerConfig, ProtocolConfig, FailurePolicy, ByteOrder
from mea_live.core.constants import MEA_SERVER_URL
from mea_live.core.exceptions import ConfigurationError


def test_defaults_point_at_production_server():
    config = Config.create_default()

    assert config.server.url == MEA_SERVER_URL
    assert config.server.request_timeout == 10.0
    assert config.protocol.mea_count == 4
    assert config.protocol.electrodes_per_mea == 32
    assert config.protocol.samples_per_electrode == 4096
    assert config.protocol.byte_order == ByteOrder.LITTLE
    assert config.protocol.data_event == "livedata"
    assert config.acquisition.default_mea_id == 1
    assert config.acquisition.failure_policy == FailurePolicy.ABORT


def test_create_default_with_url():
    config = Config.create_default("ws://mea.local/live")
    assert config.server.url == "ws://mea.local/live"


def test_round_trip_through_dict():
    config = Config.create_default("ws://mea.local/live")
    config.acquisition.failure_policy = FailurePolicy.COLLECT

    restored = Config.from_dict(config.to_dict())

    assert restored.server.url == "ws://mea.local/live"
    assert restored.acquisition.failure_policy == FailurePolicy.COLLECT


def test_default_mea_must_be_served():
    with pytest.raises(ConfigurationError):
        Config.from_dict({"protocol": {"mea_count": 2}, "acquisition": {"default_mea_id": 3}})


def test_invalid_log_level_rejected():
    with pytest.raises(ConfigurationError):
        Config.from_dict({"log_level": "VERBOSE"})


def test_log_level_validated_on_assignment():
    config = Config()
    with pytest.raises(ValidationError):
        config.log_level = "LOUD"


@pytest.mark.parametrize("field,value", [
    ("request_timeout", 0),
    ("connect_timeout", -1.0),
    ("url", "   "),
])
def test_invalid_server_settings(field, value):
    with pytest.raises(ValidationError):
        ServerConfig(**{field: value})


def test_frame_shape_is_fixed():
    with pytest.raises(ValidationError):
        ProtocolConfig(electrodes_per_mea=31)
    with pytest.raises(ValidationError):
        ProtocolConfig(samples_per_electrode=2048)


def test_inverted_value_range_rejected():
    with pytest.raises(ValidationError):
        ProtocolConfig(value_min=10.0, value_max=-10.0)
