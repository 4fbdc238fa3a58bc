"""
Hybrid mint strategy: fast sending plus concurrent confirmation checking.

Single-unit purchases are fired back to back without waiting for inclusion
while a background poller reconciles their receipts. The final tally only
counts what receipts actually show.
"""

import logging
from typing import Optional

from base_minter import BaseMinter, WalletContext
from utils.confirmation_poller import ConfirmationPoller
from utils.dispatcher import dispatch_purchases
from utils.pending_ledger import PendingLedger, RunTally
from utils.seadrop import build_purchase_call

logger = logging.getLogger(__name__)


class PurchaseSubmitter:
    """
    Signs and sends single-unit mintMulti purchases for one wallet.

    The pending nonce is read once and then incremented locally for each
    accepted submission; after a failed submission it is re-read from the node.
    """

    def __init__(self, w3, account, multimint, nft_address: str, value: int,
                 gas_price: int, gas_limit: int, chain_id: int):
        self.w3 = w3
        self.account = account
        self.multimint = multimint
        self.nft_address = nft_address
        self.value = value
        self.gas_price = gas_price
        self.gas_limit = gas_limit
        self.chain_id = chain_id
        self._nonce: Optional[int] = None

    def _next_nonce(self) -> int:
        if self._nonce is None:
            self._nonce = self.w3.eth.get_transaction_count(self.account.address, 'pending')
        return self._nonce

    def __call__(self, sequence: int):
        nonce = self._next_nonce()
        try:
            tx = build_purchase_call(self.multimint, 1, self.nft_address).build_transaction({
                'from': self.account.address,
                'value': self.value,
                'gas': self.gas_limit,
                'gasPrice': self.gas_price,
                'nonce': nonce,
                'chainId': self.chain_id,
            })
            signed_txn = self.account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed_txn.raw_transaction)
        except Exception:
            self._nonce = None
            raise
        self._nonce = nonce + 1
        return tx_hash


class HybridMinter(BaseMinter):
    """Fast sending + selective confirmation checking"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._active_poller: Optional[ConfirmationPoller] = None

    def transactions_needed(self) -> int:
        return self.config.total

    def units_per_transaction(self) -> int:
        return 1

    def interrupt(self):
        if self._active_poller is not None:
            self._active_poller.stop()

    def mint(self, ctx: WalletContext) -> RunTally:
        total = self.config.total
        ledger = PendingLedger(target=total)
        poller = ConfirmationPoller(
            ctx.w3,
            ledger,
            target=total,
            interval=self.config.poll_interval,
            max_ticks=self.config.max_poll_ticks,
            timeout=self.config.poll_timeout,
        )
        submitter = PurchaseSubmitter(
            ctx.w3,
            ctx.account,
            ctx.multimint,
            self.config.nft_address,
            value=ctx.window.price_per_unit,
            gas_price=ctx.gas_price,
            gas_limit=self.config.gas_limit,
            chain_id=self.config.chain_id,
        )

        logger.info("=== HYBRID MINT MODE ===")
        self._active_poller = poller
        poller.start()
        try:
            dispatch_purchases(
                submitter,
                total,
                ledger,
                delay=self.config.dispatch_delay,
                sleep=self._sleep,
                should_stop=lambda: self.should_stop,
            )
        except Exception as e:
            # Entries already sent are still reconciled below.
            logger.error(f"Dispatch aborted after {len(ledger)} submissions: {e}")
        finally:
            poller.mark_dispatch_complete()
            if self.should_stop:
                poller.stop()

        logger.info(f"Dispatch complete ({len(ledger)} sent). Checking confirmations...")
        poller.join()
        self._active_poller = None
        # The poller may have stopped before the last appends; report the ledger as it stands now.
        tally = ledger.tally()

        logger.info(f"Final Result: {tally.confirmed}/{tally.submitted} transactions confirmed!")
        return tally
