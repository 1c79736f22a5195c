"""
Logging setup and structured purchase events.

Purchase lifecycle events are written as single JSON lines on a dedicated
logger so they can be shipped to log search separately from debug output.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

PURCHASE_LOGGER = "booth.purchases"

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_HANDLER_NAME = "booth"


def configure_logging(level: str = "INFO") -> None:
    """
    Install a single stream handler on the root logger.

    Safe to call more than once; a handler installed by an earlier call is
    replaced, handlers installed by anything else are left alone.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "name", None) == _HANDLER_NAME:
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level.upper())


def log_purchase_event(
    *,
    user_id: str,
    amount: int,
    credits: int,
    pack_id: str,
    session_id: str,
    status: str,
    new_credits: Optional[int] = None,
    reason: Optional[str] = None,
) -> dict:
    """
    Emit one purchase lifecycle event.

    Args:
        user_id: Owning user
        amount: Amount in minor currency units
        credits: Credits in the pack
        pack_id: Catalog pack identifier
        session_id: External payment reference
        status: initiated, completed, failed or expired
        new_credits: Resulting balance, when known
        reason: Failure reason, when relevant

    Returns:
        The event record that was logged
    """
    record = {
        "type": "booth_purchase",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "user_id": user_id,
        "amount": amount,
        "credits": credits,
        "pack_id": pack_id,
        "session_id": session_id,
        "status": status,
    }
    if new_credits is not None:
        record["new_credits"] = new_credits
    if reason is not None:
        record["reason"] = reason

    logger = logging.getLogger(PURCHASE_LOGGER)
    level = logging.ERROR if status == "failed" else logging.INFO
    logger.log(level, json.dumps(record))
    return record
