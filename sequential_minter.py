import logging
import math

from web3 import Web3
from web3.exceptions import TimeExhausted

from base_minter import BaseMinter, WalletContext
from utils.common_utils import short_hash
from utils.pending_ledger import PendingLedger, RunTally, TxStatus
from utils.seadrop import build_purchase_call

logger = logging.getLogger(__name__)


class SequentialMinter(BaseMinter):
    """
    Mint the whole quantity in one mintMulti transaction and wait for it.

    A reverted or failed attempt is retried with linear backoff up to
    max_retries. A transaction whose receipt never arrives is left unresolved
    and not retried, since it may still be mined.
    """

    halt_on_low_balance = True
    receipt_timeout = 600
    # Length of each receipt wait; should_stop is checked between waits
    receipt_wait_step = 10

    def transactions_needed(self) -> int:
        return 1

    def units_per_transaction(self) -> int:
        return self.config.total

    def _wait_for_receipt(self, w3, tx_hash):
        """Wait up to receipt_timeout for a receipt, giving up early once a stop is requested."""
        rounds = max(1, math.ceil(self.receipt_timeout / self.receipt_wait_step))
        for round_number in range(1, rounds + 1):
            try:
                return w3.eth.wait_for_transaction_receipt(
                    tx_hash,
                    timeout=self.receipt_wait_step,
                    poll_latency=self.config.poll_interval,
                )
            except TimeExhausted:
                if self.should_stop or round_number == rounds:
                    raise

    def mint(self, ctx: WalletContext) -> RunTally:
        total = self.config.total
        value = ctx.window.cost(total)
        address = ctx.account.address
        ledger = PendingLedger(target=1)
        max_retries = self.config.max_retries

        logger.info("Starting minting process...")

        for attempt in range(1, max_retries + 1):
            if self.should_stop:
                break

            sequence = ledger.record_attempt()
            logger.info(f"Attempt #{sequence}: Building Mint TX...")
            try:
                mint_call = build_purchase_call(ctx.multimint, total, self.config.nft_address)
                tx_params = {
                    'from': address,
                    'value': value,
                    'gasPrice': ctx.gas_price,
                    'nonce': ctx.w3.eth.get_transaction_count(address, 'pending'),
                    'chainId': self.config.chain_id,
                }
                tx_params['gas'] = ctx.gas_manager.estimate_gas_limit(tx_params, mint_call)
                tx = mint_call.build_transaction(tx_params)

                signed_txn = ctx.account.sign_transaction(tx)
                tx_hash = ctx.w3.eth.send_raw_transaction(signed_txn.raw_transaction)
            except Exception as e:
                logger.error(f"Mint attempt #{sequence} exception: {e}")
                if attempt < max_retries:
                    self._sleep(2 * attempt)
                continue

            entry = ledger.append(tx_hash, sequence)
            logger.info(f"Sent Tx: {entry.transaction_hash}")

            try:
                receipt = self._wait_for_receipt(ctx.w3, entry.transaction_hash)
            except Exception as e:
                logger.warning(f"No receipt for {short_hash(entry.transaction_hash)}: {e}. "
                               f"Leaving it unresolved.")
                break

            if receipt['status'] == 1:
                ledger.resolve(entry.transaction_hash, TxStatus.CONFIRMED)
                logger.info(f"Mint TX Succeeded: {entry.transaction_hash}")
                break

            ledger.resolve(entry.transaction_hash, TxStatus.REVERTED)
            logger.error(f"Mint TX Failed: {short_hash(entry.transaction_hash)}")
            if attempt < max_retries:
                logger.info(f"Retrying in {2 * attempt} seconds...")
                self._sleep(2 * attempt)

        tally = ledger.tally()
        minted = tally.confirmed * total
        logger.info(f"Minted {minted}/{total} NFTs ({Web3.from_wei(value, 'ether')} "
                    f"{self.config.native_token} per attempt)")
        return tally
