"""Unit tests for logging and tracing configuration."""

from __future__ import annotations

from shipnorth.config import Environment, ObservabilitySettings
from shipnorth.infrastructure.observability.logging import setup_logging
from shipnorth.infrastructure.observability.tracing import get_tracer, setup_tracing


class TestLogging:
    def test_setup_logging_info(self) -> None:
        setup_logging("INFO")  # Should not raise

    def test_setup_logging_console(self) -> None:
        setup_logging("DEBUG", json_output=False)

    def test_unknown_level_falls_back(self) -> None:
        setup_logging("chatty")


class TestTracing:
    def test_disabled_tracing_installs_nothing(self) -> None:
        assert setup_tracing(ObservabilitySettings(tracing_enabled=False)) is None

    def test_enabled_tracing_returns_provider(self) -> None:
        provider = setup_tracing(
            ObservabilitySettings(tracing_enabled=True, service_name="shipnorth-test"),
            Environment.DEVELOPMENT,
        )
        assert provider is not None
        assert provider.resource.attributes["service.name"] == "shipnorth-test"
        provider.shutdown()

    def test_get_tracer(self) -> None:
        assert get_tracer() is not None
