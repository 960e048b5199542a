"""
Structured logging: JSON formatting, context propagation, and the
import boundary between the kernel and the outer packages.
"""

import ast
import json
import logging
import sys
from pathlib import Path
from uuid import uuid4

from escrow_kernel.logging_config import LogContext, StructuredFormatter, get_logger

KERNEL_ROOT = Path(__file__).resolve().parents[2] / "escrow_kernel"


def _format(record_msg: str, **extra) -> dict:
    logger = get_logger("tests.logging")
    record = logger.makeRecord(
        logger.name, logging.INFO, __file__, 1, record_msg, (), None, extra=extra
    )
    return json.loads(StructuredFormatter().format(record))


def test_records_are_single_json_lines():
    payload = _format("bid_submitted", bid_price="500")
    assert payload["message"] == "bid_submitted"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "escrow_kernel.tests.logging"
    assert payload["bid_price"] == "500"


def test_context_fields_are_included_and_restored():
    quotation_id = uuid4()
    with LogContext.bind(quotation_id=quotation_id, job_name="escrow.release_matured"):
        inside = _format("inside")
    outside = _format("outside")

    assert inside["quotation_id"] == str(quotation_id)
    assert inside["job_name"] == "escrow.release_matured"
    assert "quotation_id" not in outside


def test_kernel_errors_are_flattened_into_the_record():
    from escrow_kernel.exceptions import QuotationNotOpenError

    logger = get_logger("tests.logging")
    try:
        raise QuotationNotOpenError("q-1", "closed")
    except QuotationNotOpenError:
        record = logger.makeRecord(
            logger.name, logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
        )
    payload = json.loads(StructuredFormatter().format(record))
    assert payload["exc_code"] == "QUOTATION_NOT_OPEN"
    assert payload["exc_status"] == "closed"


def test_kernel_never_imports_outer_packages():
    offenders = []
    for path in KERNEL_ROOT.rglob("*.py"):
        tree = ast.parse(path.read_text())
        for node in ast.walk(tree):
            names = []
            if isinstance(node, ast.Import):
                names = [alias.name for alias in node.names]
            elif isinstance(node, ast.ImportFrom) and node.module:
                names = [node.module]
            for name in names:
                if name.split(".")[0] in ("escrow_config", "escrow_batch"):
                    offenders.append(f"{path.name}: {name}")
    assert offenders == []
