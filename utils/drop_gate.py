"""Time gating for a public drop: hold dispatch until the sale window opens."""

import logging
import time
from datetime import datetime
from enum import Enum

logger = logging.getLogger(__name__)


class DropState(Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    ENDED = "ended"


def check_drop_status(window, now: float = None) -> DropState:
    """
    Classify the sale window against the current time.

    Args:
        window: SaleWindow with start_time/end_time in unix seconds
        now: Current unix time (defaults to time.time())
    """
    if now is None:
        now = time.time()
    if now < window.start_time:
        return DropState.NOT_STARTED
    if now > window.end_time:
        return DropState.ENDED
    return DropState.ACTIVE


def _fmt(ts: int) -> str:
    return datetime.fromtimestamp(ts).strftime('%Y-%m-%d %H:%M:%S')


def wait_for_drop(window, clock=time.time, sleep=time.sleep) -> DropState:
    """
    Block until the drop opens.

    The start time is a fixed wall-clock value, so a single sleep for the
    remaining delay is enough. An ended sale returns ENDED immediately and
    the caller must not dispatch.

    Args:
        window: SaleWindow to gate on
        clock: Callable returning the current unix time
        sleep: Callable used to suspend for the remaining delay

    Returns:
        DropState: ACTIVE once the drop can be minted, or ENDED
    """
    state = check_drop_status(window, clock())

    if state is DropState.ENDED:
        logger.warning(f"Drop has already ended. Ended at: {_fmt(window.end_time)}")
        return state

    if state is DropState.NOT_STARTED:
        delay = window.start_time - clock()
        if delay > 0:
            logger.info(f"Drop hasn't started yet. Starts at: {_fmt(window.start_time)} "
                        f"(waiting {delay:.1f}s)")
            sleep(delay)
        if clock() > window.end_time:
            logger.warning(f"Drop closed while waiting. Ended at: {_fmt(window.end_time)}")
            return DropState.ENDED
        logger.info("Drop is now open! Starting mint...")
        return DropState.ACTIVE

    logger.info("Drop is currently active")
    return state
