"""Rapid-fire submission loop for single-unit purchases."""

import logging
import time
from typing import Callable, List, Optional

from utils.common_utils import short_hash
from utils.pending_ledger import DispatchAttempt, PendingLedger

logger = logging.getLogger(__name__)

DEFAULT_DISPATCH_DELAY = 0.05


def dispatch_purchases(submit: Callable[[int], object], total: int, ledger: PendingLedger,
                       delay: float = DEFAULT_DISPATCH_DELAY, sleep=time.sleep,
                       should_stop: Optional[Callable[[], bool]] = None) -> List[DispatchAttempt]:
    """
    Submit purchases one after another without waiting for inclusion.

    Makes at most 2 * total attempts and stops as soon as `total` submissions
    have been accepted by the endpoint. Each accepted submission is appended
    to the ledger as UNCHECKED; a failed submission is logged and skipped.

    Args:
        submit: Callable taking the attempt sequence number and returning the
            transaction hash, raising on any submission failure
        total: Number of accepted submissions wanted
        ledger: Ledger shared with the confirmation poller
        delay: Pause between attempts in seconds
        sleep: Callable used for the pause
        should_stop: Optional callable; dispatch ends early when it returns True

    Returns:
        List of DispatchAttempt in attempt order
    """
    if total < 1:
        raise ValueError(f"total must be at least 1, got {total}")

    max_attempts = total * 2
    submitted = 0
    attempts: List[DispatchAttempt] = []

    logger.info(f"Rapid sending mode: target {total}, attempt budget {max_attempts}")

    while submitted < total and len(attempts) < max_attempts:
        if should_stop is not None and should_stop():
            logger.warning(f"Dispatch stopped after {len(attempts)} attempts")
            break

        sequence = ledger.record_attempt()
        try:
            tx_hash = submit(sequence)
            entry = ledger.append(tx_hash, sequence)
        except Exception as e:
            logger.error(f"Failed (#{sequence}): {e}")
            attempts.append(DispatchAttempt(sequence_number=sequence))
        else:
            submitted += 1
            attempts.append(DispatchAttempt(sequence_number=sequence,
                                            transaction_hash=entry.transaction_hash))
            logger.info(f"Sent: {short_hash(entry.transaction_hash)} (#{sequence}) "
                        f"[{submitted}/{total}]")
            if submitted >= total:
                break

        sleep(delay)

    if submitted < total and len(attempts) >= max_attempts:
        logger.warning(f"Attempt budget exhausted: only {submitted}/{total} submissions accepted "
                       f"after {len(attempts)} attempts")
    else:
        logger.info(f"Sent {submitted} transactions in {len(attempts)} attempts")

    return attempts
