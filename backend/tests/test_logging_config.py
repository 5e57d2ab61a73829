"""Tests for structured logging configuration."""

import asyncio
import json

import pytest

from insight_flow.logging_config import (
    bind_flow_context,
    clear_correlation_id,
    configure_logging,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)


def _json_lines(output: str) -> list[dict]:
    return [json.loads(line) for line in output.strip().split("\n") if line.strip()]


class TestLoggingConfiguration:
    """Test configure_logging function."""

    def test_configure_logging_is_idempotent(self) -> None:
        configure_logging(log_level="DEBUG")
        configure_logging(log_level="DEBUG")
        configure_logging(log_level="INFO")

    def test_configure_logging_accepts_valid_levels(self) -> None:
        for level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            configure_logging(log_level=level)


class TestCorrelationId:
    """Test correlation_id context management."""

    def setup_method(self) -> None:
        clear_correlation_id()

    def test_get_correlation_id_default(self) -> None:
        assert get_correlation_id() is None

    def test_set_and_get_correlation_id(self) -> None:
        set_correlation_id("flow-1700000000000-abc1234")
        assert get_correlation_id() == "flow-1700000000000-abc1234"

    def test_clear_correlation_id(self) -> None:
        set_correlation_id("test-id")
        clear_correlation_id()
        assert get_correlation_id() is None


class TestBindFlowContext:
    """Test per-stage binding of correlation_id and stage."""

    def setup_method(self) -> None:
        clear_correlation_id()

    def test_binds_inside_block_and_restores(self) -> None:
        with bind_flow_context("flow-1", "rag-retrieval"):
            assert get_correlation_id() == "flow-1"
        assert get_correlation_id() is None

    def test_nested_blocks_restore_outer_binding(self) -> None:
        with bind_flow_context("flow-outer", "preprocess-message"):
            with bind_flow_context("flow-inner", "rag-retrieval"):
                assert get_correlation_id() == "flow-inner"
            assert get_correlation_id() == "flow-outer"

    def test_restores_on_exception(self) -> None:
        with pytest.raises(RuntimeError):
            with bind_flow_context("flow-1", "response-generation"):
                raise RuntimeError("boom")
        assert get_correlation_id() is None

    @pytest.mark.asyncio
    async def test_concurrent_tasks_are_isolated(self) -> None:
        seen: dict[str, str | None] = {}

        async def flow(correlation_id: str) -> None:
            with bind_flow_context(correlation_id, "rag-retrieval"):
                await asyncio.sleep(0)
                seen[correlation_id] = get_correlation_id()

        await asyncio.gather(flow("flow-a"), flow("flow-b"))
        assert seen == {"flow-a": "flow-a", "flow-b": "flow-b"}


class TestStructuredLoggingOutput:
    """Test structured logging output format."""

    def test_log_lines_carry_flow_context(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_level="DEBUG")
        logger = get_logger("insight_flow.test_module")

        with bind_flow_context("flow-ctx", "llm-filter-extraction"):
            logger.info("stage_completed", extra_field="extra_value")

        for data in _json_lines(capsys.readouterr().out):
            assert data["correlation_id"] == "flow-ctx"
            assert data["stage"] == "llm-filter-extraction"
            assert data["extra_field"] == "extra_value"

    def test_log_output_has_standard_fields(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_level="DEBUG")
        logger = get_logger("insight_flow.test_module")
        logger.warning("test warning level")

        for data in _json_lines(capsys.readouterr().out):
            assert "timestamp" in data
            assert data["level"] == "warning"
            assert data["logger"] == "insight_flow.test_module"
