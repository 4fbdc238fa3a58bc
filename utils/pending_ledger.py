"""
Shared record of submitted purchase transactions awaiting reconciliation.

The dispatch loop appends entries as the endpoint accepts submissions and the
confirmation poller moves them to a terminal status once a receipt is seen.
Both run on different threads, so every read and write goes through one lock.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Union

from hexbytes import HexBytes
from web3 import Web3

logger = logging.getLogger(__name__)


class LedgerError(ValueError):
    """Raised on an illegal ledger transition."""


class TxStatus(Enum):
    UNCHECKED = "unchecked"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


@dataclass(frozen=True)
class DispatchAttempt:
    sequence_number: int
    transaction_hash: Union[str, None] = None

    @property
    def accepted(self) -> bool:
        return self.transaction_hash is not None


@dataclass
class PendingEntry:
    transaction_hash: str
    sequence_number: int
    status: TxStatus = TxStatus.UNCHECKED


@dataclass(frozen=True)
class RunTally:
    attempted: int
    submitted: int
    confirmed: int
    reverted: int
    unresolved: int
    target: int = 0

    @property
    def shortfall(self) -> int:
        """Units of the target that were never submitted."""
        return max(self.target - self.submitted, 0)

    @property
    def complete(self) -> bool:
        return self.target > 0 and self.confirmed >= self.target

    def as_dict(self) -> Dict[str, int]:
        return {
            'attempted': self.attempted,
            'submitted': self.submitted,
            'confirmed': self.confirmed,
            'reverted': self.reverted,
            'unresolved': self.unresolved,
        }

    def __str__(self) -> str:
        return (f"attempted={self.attempted} submitted={self.submitted} "
                f"confirmed={self.confirmed} reverted={self.reverted} "
                f"unresolved={self.unresolved}")


def normalize_hash(tx_hash) -> str:
    """Return a lowercase 0x-prefixed hex string for a hash given as bytes or str."""
    return Web3.to_hex(HexBytes(tx_hash)).lower()


class PendingLedger:
    """
    Thread-safe ledger of submitted transactions keyed by transaction hash.

    Entries start as UNCHECKED and move exactly once to CONFIRMED or REVERTED.
    Terminal entries leave the active table but stay in the settled table so
    the final tally and report can still name them.
    """

    def __init__(self, target: int = 0):
        self.target = target
        self._lock = threading.Lock()
        self._active: Dict[str, PendingEntry] = {}
        self._settled: Dict[str, PendingEntry] = {}
        self._attempted = 0

    def record_attempt(self) -> int:
        """Count a submission attempt and return its sequence number."""
        with self._lock:
            self._attempted += 1
            return self._attempted

    def append(self, tx_hash, sequence_number: int) -> PendingEntry:
        """
        Add an UNCHECKED entry for an accepted submission.

        A hash that is already known is updated in place. A settled entry keeps
        its terminal status.
        """
        key = normalize_hash(tx_hash)
        with self._lock:
            if key in self._settled:
                logger.warning(f"Duplicate append for settled tx {key[:10]}... ignored")
                return self._settled[key]
            entry = self._active.get(key)
            if entry is not None:
                logger.warning(f"Duplicate append for pending tx {key[:10]}... updated in place")
                entry.sequence_number = sequence_number
                return entry
            entry = PendingEntry(transaction_hash=key, sequence_number=sequence_number)
            self._active[key] = entry
            return entry

    def unchecked(self) -> List[PendingEntry]:
        """Snapshot of entries still awaiting a receipt, in submission order."""
        with self._lock:
            return list(self._active.values())

    def settled(self) -> List[PendingEntry]:
        with self._lock:
            return list(self._settled.values())

    def resolve(self, tx_hash, status: TxStatus) -> PendingEntry:
        """Move an UNCHECKED entry to a terminal status."""
        if status is TxStatus.UNCHECKED:
            raise LedgerError("Entries can only be resolved to a terminal status")
        key = normalize_hash(tx_hash)
        with self._lock:
            if key in self._settled:
                raise LedgerError(
                    f"Transaction {key} is already {self._settled[key].status.value}")
            entry = self._active.pop(key, None)
            if entry is None:
                raise LedgerError(f"Unknown transaction {key}")
            entry.status = status
            self._settled[key] = entry
            return entry

    def counts(self) -> Dict[TxStatus, int]:
        with self._lock:
            return self._counts_locked()

    def _counts_locked(self) -> Dict[TxStatus, int]:
        counts = {status: 0 for status in TxStatus}
        counts[TxStatus.UNCHECKED] = len(self._active)
        for entry in self._settled.values():
            counts[entry.status] += 1
        return counts

    def tally(self) -> RunTally:
        """Derive the run tally from the current ledger contents."""
        with self._lock:
            counts = self._counts_locked()
            return RunTally(
                attempted=self._attempted,
                submitted=len(self._active) + len(self._settled),
                confirmed=counts[TxStatus.CONFIRMED],
                reverted=counts[TxStatus.REVERTED],
                unresolved=counts[TxStatus.UNCHECKED],
                target=self.target,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._active) + len(self._settled)
