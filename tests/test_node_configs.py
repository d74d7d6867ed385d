"""Tests for node config parsing into typed variants."""

import pytest
from pydantic import ValidationError

from models.nodes import (
    ConditionConfig,
    SendLinkedInConfig,
    WaitConfig,
    parse_node_config,
)


class TestParseNodeConfig:

    @pytest.mark.parametrize("days,hours", [(0, 0), (1, 0), (0, 5), (3, 12), (30, 23)])
    def test_wait_delay_formula(self, days, hours):
        config = parse_node_config("wait", {"days": days, "hours": hours})
        assert isinstance(config, WaitConfig)
        assert config.delay_ms == (days * 86400 + hours * 3600) * 1000

    def test_wait_missing_values_are_zero(self):
        assert parse_node_config("wait", {"days": None}).delay_ms == 0
        assert parse_node_config("wait", None).delay_ms == 0

    def test_wait_rejects_negative(self):
        with pytest.raises(ValidationError):
            parse_node_config("wait", {"days": -1})

    def test_condition_defaults(self):
        config = parse_node_config("condition", {"channel": "", "lookback_hours": 0})
        assert isinstance(config, ConditionConfig)
        assert config.channel == "email"
        assert config.event_type == "replied"
        assert config.lookback_hours == 48
        assert config.min_count == 1
        assert config.min_scroll == 50

    def test_linkedin_type_defaults_to_message(self):
        config = parse_node_config("send_linkedin", {"message": "Hi"})
        assert isinstance(config, SendLinkedInConfig)
        assert config.linkedin_type == "message"

    def test_unknown_type_returns_none(self):
        assert parse_node_config("send_fax", {"number": "1"}) is None

    def test_extra_keys_are_kept(self):
        config = parse_node_config("send_email", {"subject": "s", "body": "b", "template_id": "t-1"})
        assert config.model_extra == {"template_id": "t-1"}
