"""
Confirmation poller for dispatched purchase transactions.

Runs alongside the dispatch loop on a background thread, checking receipts
for every UNCHECKED ledger entry on a fixed interval until nothing is left
pending or the target number of purchases is confirmed.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from web3.exceptions import TransactionNotFound

from utils.common_utils import short_hash
from utils.pending_ledger import PendingLedger, RunTally, TxStatus

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0


class PollerState(Enum):
    RUNNING = "running"
    DRAINING = "draining"
    DONE = "done"


class StopReason(Enum):
    NO_PENDING = "no pending transactions"
    TARGET_CONFIRMED = "target confirmed"
    MAX_TICKS = "max poll ticks reached"
    TIMEOUT = "poll timeout reached"
    STOPPED = "stopped"


@dataclass(frozen=True)
class TickResult:
    tick: int
    still_pending: int
    confirmed: int
    reverted: int
    state: PollerState


class ConfirmationPoller:
    """
    Reconciles ledger entries against on-chain receipts.

    A missing receipt and a failed receipt query are both treated as "still
    pending"; only a receipt with a failure status marks an entry REVERTED.
    """

    def __init__(self, web3, ledger: PendingLedger, target: int,
                 interval: float = DEFAULT_POLL_INTERVAL, max_ticks: Optional[int] = None,
                 timeout: Optional[float] = None, clock=time.monotonic):
        """
        Args:
            web3: Web3 instance (anything exposing eth.get_transaction_receipt)
            ledger: Ledger shared with the dispatch loop
            target: Number of confirmations that ends polling early
            interval: Seconds between ticks
            max_ticks: Optional cap on the number of ticks
            timeout: Optional cap on total polling time in seconds
            clock: Monotonic clock used for the timeout
        """
        self.web3 = web3
        self.ledger = ledger
        self.target = target
        self.interval = interval
        self.max_ticks = max_ticks
        self.timeout = timeout
        self._clock = clock

        self.state = PollerState.RUNNING
        self.stop_reason: Optional[StopReason] = None
        self.ticks = 0
        self.result: Optional[RunTally] = None

        self.dispatch_done = threading.Event()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def mark_dispatch_complete(self):
        """Signal that no more entries will be appended."""
        self.dispatch_done.set()

    def stop(self):
        """Request termination; remaining entries are reported unresolved."""
        self._stop_event.set()

    def check_receipt(self, tx_hash: str):
        """Return the receipt for tx_hash, or None if it is not mined yet."""
        try:
            return self.web3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

    def tick(self) -> TickResult:
        """Query receipts for every UNCHECKED entry once."""
        self.ticks += 1
        # Read before the snapshot so an append racing this tick is not missed.
        dispatch_finished = self.dispatch_done.is_set()

        still_pending = 0
        confirmed = 0
        reverted = 0

        for entry in self.ledger.unchecked():
            try:
                receipt = self.check_receipt(entry.transaction_hash)
                if receipt is None:
                    still_pending += 1
                    continue
                status = TxStatus.CONFIRMED if receipt['status'] == 1 else TxStatus.REVERTED
                self.ledger.resolve(entry.transaction_hash, status)
            except Exception as e:
                logger.warning(f"Receipt check failed for {short_hash(entry.transaction_hash)} "
                               f"(#{entry.sequence_number}): {e}")
                still_pending += 1
                continue

            if status is TxStatus.CONFIRMED:
                confirmed += 1
                logger.info(f"Confirmed: {short_hash(entry.transaction_hash)} (#{entry.sequence_number})")
            else:
                reverted += 1
                logger.error(f"Reverted: {short_hash(entry.transaction_hash)} (#{entry.sequence_number})")

        total_confirmed = self.ledger.tally().confirmed
        if total_confirmed >= self.target:
            self._finish(StopReason.TARGET_CONFIRMED)
        elif still_pending == 0:
            if dispatch_finished:
                self._finish(StopReason.NO_PENDING)
            else:
                self.state = PollerState.DRAINING
        else:
            self.state = PollerState.RUNNING

        logger.info(f"Poll #{self.ticks}: {total_confirmed}/{self.target} confirmed, "
                    f"{still_pending} pending, +{confirmed} confirmed, +{reverted} reverted "
                    f"[{self.state.value}]")

        return TickResult(
            tick=self.ticks,
            still_pending=still_pending,
            confirmed=confirmed,
            reverted=reverted,
            state=self.state,
        )

    def _finish(self, reason: StopReason):
        self.state = PollerState.DONE
        if self.stop_reason is None:
            self.stop_reason = reason

    def run(self) -> RunTally:
        """Tick until done, stopped, or a configured limit is reached."""
        started = self._clock()

        while True:
            if self._stop_event.is_set():
                self._finish(StopReason.STOPPED)
                break

            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in poll tick #{self.ticks}: {e}")

            if self.state is PollerState.DONE:
                break
            if self.max_ticks is not None and self.ticks >= self.max_ticks:
                self._finish(StopReason.MAX_TICKS)
                break
            if self.timeout is not None and self._clock() - started >= self.timeout:
                self._finish(StopReason.TIMEOUT)
                break

            self._stop_event.wait(self.interval)

        self.result = self.ledger.tally()
        logger.info(f"Reconciliation finished ({self.stop_reason.value}): "
                    f"{self.result.confirmed}/{self.result.submitted} transactions confirmed")
        if self.result.unresolved:
            logger.warning(f"{self.result.unresolved} transaction(s) still unresolved. "
                           f"Check your wallet later.")
        return self.result

    def start(self):
        """Run the poller on a daemon thread."""
        self._thread = threading.Thread(target=self.run, name="confirmation-poller", daemon=True)
        self._thread.start()
        return self._thread

    def join(self, timeout: Optional[float] = None) -> Optional[RunTally]:
        if self._thread is not None:
            self._thread.join(timeout)
        return self.result
