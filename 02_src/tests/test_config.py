"""Tests for AgentConfig."""

import pytest

from agentnet.config import DEFAULT_DISCOVERY_TOPIC, AgentConfig
from agentnet.errors import ConfigurationError, ValidationError


def base_config(**overrides):
    data = {"metadata": {"namespace": "sales", "name": "frontDesk"}}
    data.update(overrides)
    return data


class TestFromDict:
    """Tests for AgentConfig.from_dict()."""

    def test_defaults(self):
        config = AgentConfig.from_dict(base_config())

        assert config.identity.network == "sales.frontDesk"
        assert config.task_topic == "sales.frontDesk"
        assert config.transport_type == "memory"
        assert config.bindings.discovery_topic == DEFAULT_DISCOVERY_TOPIC
        assert config.bindings.accepted_networks == ()
        assert config.runner.max_runs == 10
        assert config.timeouts.task == 120.0
        assert config.retry.max_retries == 3
        assert config.capability_ttl is None
        assert config.provider.kind == "anthropic"

    def test_full_surface(self):
        config = AgentConfig.from_dict(
            base_config(
                transportType="NATS",
                connectionConfig={"servers": ["nats://broker:4222"]},
                bindings={"discoveryTopic": "agents", "acceptedNetworks": ["sales.*", "*.billing"]},
                runner={"maxRuns": 3, "maxHistory": 20},
                timeouts={"tool": 5, "handoff": 10},
                retry={"maxRetries": 0},
                capabilityTtl=30,
                llm={"provider": "OpenAI", "options": {"model": "gpt-test"}, "config": {"temperature": 0}},
                store={"type": "redis", "options": {"url": "redis://cache:6379"}},
            )
        )

        assert config.transport_type == "nats"
        assert config.connection == {"servers": ["nats://broker:4222"]}
        assert config.bindings.accepted_networks == ("sales.*", "*.billing")
        assert config.runner.max_runs == 3
        assert config.timeouts.tool == 5.0
        assert config.timeouts.model == 60.0
        assert config.retry.max_retries == 0
        assert config.capability_ttl == 30.0
        assert config.provider.kind == "openai"
        assert config.provider.options == {"model": "gpt-test"}
        assert config.provider.model == {"temperature": 0}
        assert config.storage.kind == "redis"

    def test_metadata_required(self):
        with pytest.raises(ConfigurationError):
            AgentConfig.from_dict({"transportType": "memory"})

    def test_identity_validated(self):
        with pytest.raises(ValidationError):
            AgentConfig.from_dict({"metadata": {"namespace": "sales.eu", "name": "x"}})

    def test_collects_all_errors(self):
        with pytest.raises(ValidationError) as exc_info:
            AgentConfig.from_dict(
                base_config(
                    runner={"maxRuns": 0},
                    bindings={"acceptedNetworks": ["sales"]},
                    timeouts={"task": -1},
                )
            )

        errors = exc_info.value.errors
        assert "runner.maxRuns must be greater than 0" in errors
        assert "timeouts.task must be greater than 0" in errors
        assert len(errors) == 3

    def test_non_numeric_value(self):
        with pytest.raises(ConfigurationError):
            AgentConfig.from_dict(base_config(runner={"maxRuns": "many"}))


class TestFromEnv:
    """Tests for AgentConfig.from_env()."""

    def test_reads_agentnet_variables(self):
        config = AgentConfig.from_env(
            {
                "AGENTNET_NAMESPACE": "support",
                "AGENTNET_NAME": "helpdesk",
                "AGENTNET_TRANSPORT": "redis",
                "AGENTNET_REDIS_URL": "redis://cache:6379",
                "AGENTNET_ACCEPTED_NETWORKS": "sales.*, support.billing",
                "AGENTNET_CAPABILITY_TTL": "15",
                "AGENTNET_MAX_RUNS": "4",
                "AGENTNET_STORAGE": "memory",
                "AGENTNET_MODEL": "claude-test",
            }
        )

        assert config.identity.network == "support.helpdesk"
        assert config.transport_type == "redis"
        assert config.connection == {"url": "redis://cache:6379"}
        assert config.bindings.accepted_networks == ("sales.*", "support.billing")
        assert config.capability_ttl == 15.0
        assert config.runner.max_runs == 4
        assert config.storage.kind == "memory"
        assert config.provider.model == {"model": "claude-test"}

    def test_nats_servers_split(self):
        config = AgentConfig.from_env(
            {"AGENTNET_TRANSPORT": "nats", "AGENTNET_NATS_SERVERS": "nats://a:4222,nats://b:4222"}
        )

        assert config.identity.network == "default.agent"
        assert config.connection == {"servers": ["nats://a:4222", "nats://b:4222"]}
        assert config.capability_ttl is None

    def test_rabbitmq_url(self):
        config = AgentConfig.from_env(
            {"AGENTNET_TRANSPORT": "rabbitmq", "AGENTNET_RABBITMQ_URL": "amqp://mq:5672//"}
        )

        assert config.transport_type == "rabbitmq"
        assert config.connection == {"url": "amqp://mq:5672//"}
