"""
Traffic Cop Capture Repair

Recovers capture files that were cut off or corrupted mid-write
(truncated arrays, stray commas, missing brackets) using json_repair.
Well-formed text always passes through unchanged.
"""

import json
from dataclasses import dataclass

import structlog
from json_repair import repair_json

from trafficcop.analysis.errors import MalformedInputError
from trafficcop.analysis.models import CaptureDocument
from trafficcop.analysis.parser import parse

logger = structlog.get_logger(__name__)

BYTE_ORDER_MARK = "\ufeff"


@dataclass
class RepairResult:
    """Outcome of a repair attempt."""

    success: bool
    content: str
    repaired: bool = False
    error: str | None = None


def repair_capture_text(text: str) -> RepairResult:
    """
    Repair malformed capture text.

    Args:
        text: Raw capture text

    Returns:
        RepairResult; `content` is the original text when no repair was
        needed or repair failed
    """
    try:
        json.loads(text)
        return RepairResult(success=True, content=text)
    except json.JSONDecodeError as parse_error:
        original_error = str(parse_error)

    cleaned = text[1:] if text.startswith(BYTE_ORDER_MARK) else text

    try:
        repaired = repair_json(cleaned)
        json.loads(repaired)
    except Exception as e:
        logger.warning("capture_repair_failed", error=str(e), original_error=original_error)
        return RepairResult(
            success=False,
            content=text,
            error=f"Failed to repair: {e}. Original error: {original_error}",
        )

    logger.warning("capture_repaired", original_error=original_error)
    return RepairResult(
        success=True,
        content=repaired,
        repaired=True,
        error=f"Auto-repaired: {original_error}",
    )


def repair_and_parse(text: str) -> CaptureDocument:
    """
    Repair capture text if needed, then parse it.

    Raises:
        MalformedInputError: If the text cannot be repaired
        InvalidDocumentError: If the repaired value lacks the capture structure
    """
    result = repair_capture_text(text)
    if not result.success:
        raise MalformedInputError(result.error or "Failed to repair capture text")
    return parse(result.content)
