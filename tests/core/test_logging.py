"""
Tests for structured logging helpers.
"""

from decimal import Decimal

import pytest
import structlog

from qred.core.logging import LogContext, stringify_decimals


@pytest.mark.unit
def test_decimals_rendered_as_strings():
    event = {"event": "payment_recorded", "amount": Decimal("20000.00"), "settled": False}

    result = stringify_decimals(None, "info", event)

    assert result == {"event": "payment_recorded", "amount": "20000.00", "settled": False}


@pytest.mark.unit
def test_log_context_restores_outer_values():
    structlog.contextvars.clear_contextvars()

    with LogContext(request_id="outer"):
        with LogContext(request_id="inner", debt_id="d1"):
            assert structlog.contextvars.get_contextvars() == {
                "request_id": "inner",
                "debt_id": "d1",
            }
        assert structlog.contextvars.get_contextvars() == {"request_id": "outer"}

    assert structlog.contextvars.get_contextvars() == {}
