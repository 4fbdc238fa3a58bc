import logging
import signal
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from eth_account import Account
from web3 import Web3

from mint_config import MintConfig
from utils.common_utils import mask_key
from utils.drop_gate import DropState, check_drop_status, wait_for_drop
from utils.gas_manager import GasManager
from utils.pending_ledger import RunTally
from utils.seadrop import SaleWindow, SaleWindowError, get_multimint_contract, get_sale_window
from utils.web3_utils import connect_with_fallback

logger = logging.getLogger(__name__)


class WalletStatus(Enum):
    MINTED = "minted"
    PARTIAL = "partial"
    SALE_CLOSED = "sale closed"
    INSUFFICIENT_FUNDS = "insufficient funds"
    FAILED = "failed"


@dataclass
class WalletContext:
    """Per-wallet state handed to a strategy once pre-flight checks pass."""
    w3: Web3
    account: object
    window: SaleWindow
    gas_manager: GasManager
    gas_price: int
    multimint: object
    balance: int


@dataclass
class WalletOutcome:
    address: str
    status: WalletStatus
    tally: Optional[RunTally] = None
    units_minted: int = 0
    error: Optional[str] = None


class BaseMinter(ABC):
    """Base class for mint strategies with the shared per-wallet flow"""

    # Stop a wallet before dispatch when its balance cannot cover the run
    halt_on_low_balance = False

    def __init__(self, config: MintConfig, connect=connect_with_fallback, clock=time.time, sleep=time.sleep):
        """
        Initialize a minter for a validated configuration

        Args:
            config (MintConfig): Run configuration
            connect: Callable (rpc_urls, chain_id) -> Web3
            clock: Callable returning the current unix time
            sleep: Callable used for every timed wait
        """
        self.config = config
        self._connect = connect
        self._clock = clock
        self._sleep = sleep
        self.should_stop = False
        self.outcomes: List[WalletOutcome] = []

    @abstractmethod
    def transactions_needed(self) -> int:
        """Number of transactions one wallet run is expected to send"""
        pass

    @abstractmethod
    def units_per_transaction(self) -> int:
        pass

    @abstractmethod
    def mint(self, ctx: WalletContext) -> RunTally:
        """Run the strategy for one wallet and return its tally"""
        pass

    def interrupt(self):
        """Hook called on SIGINT/SIGTERM after should_stop is set"""
        pass

    def _signal_handler(self, signum, frame):
        if self.should_stop:
            raise KeyboardInterrupt
        logger.info("Received interrupt signal. Stopping; transactions already sent remain valid on-chain.")
        self.should_stop = True
        self.interrupt()

    def _install_signal_handlers(self):
        if threading.current_thread() is not threading.main_thread():
            return
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def run(self) -> List[WalletOutcome]:
        """Process every configured wallet, one after another"""
        self._install_signal_handlers()
        keys = self.config.private_keys
        logger.info(f"Loaded {len(keys)} private key(s)")

        for index, private_key in enumerate(keys, start=1):
            if self.should_stop:
                logger.warning("Stop requested; skipping remaining wallets")
                break
            logger.info(f"Processing wallet {index}/{len(keys)}: {mask_key(private_key)}")
            try:
                outcome = self.process_wallet(private_key)
            except Exception as e:
                logger.error(f"Unexpected error for wallet {mask_key(private_key)}: {e}")
                outcome = WalletOutcome(address=mask_key(private_key), status=WalletStatus.FAILED, error=str(e))
            self.outcomes.append(outcome)

        self._log_summary()
        return self.outcomes

    def process_wallet(self, private_key: str) -> WalletOutcome:
        account = Account.from_key(private_key)
        address = account.address
        logger.info(f"Using Address: {address}")

        try:
            w3 = self._connect(self.config.rpc_urls, self.config.chain_id)
            window = get_sale_window(w3, self.config.seadrop_address, self.config.nft_address)
        except (ConnectionError, SaleWindowError) as e:
            logger.error(f"Wallet {address} aborted: {e}")
            return WalletOutcome(address=address, status=WalletStatus.FAILED, error=str(e))

        state = check_drop_status(window, self._clock())
        logger.info(f"Drop Status: {state.value}")
        if state is DropState.ENDED:
            logger.warning(f"Sale closed for {self.config.nft_address}; nothing dispatched")
            return WalletOutcome(address=address, status=WalletStatus.SALE_CLOSED)

        gas_manager = GasManager(w3, self.config.chain_id, self.config.gas_multiplier, self.config.gas_limit)
        try:
            gas_price = gas_manager.resolve_gas_price(self.config.gas_price)
            balance = w3.eth.get_balance(address)
        except Exception as e:
            logger.error(f"Wallet {address} aborted during pre-flight: {e}")
            return WalletOutcome(address=address, status=WalletStatus.FAILED, error=str(e))

        ctx = WalletContext(
            w3=w3,
            account=account,
            window=window,
            gas_manager=gas_manager,
            gas_price=gas_price,
            multimint=get_multimint_contract(w3, self.config.multimint_address),
            balance=balance,
        )

        if not self._preflight(ctx) and self.halt_on_low_balance:
            logger.error("Not Enough Native Balance! Skipping wallet...")
            return WalletOutcome(address=address, status=WalletStatus.INSUFFICIENT_FUNDS)

        if wait_for_drop(window, clock=self._clock, sleep=self._sleep) is DropState.ENDED:
            return WalletOutcome(address=address, status=WalletStatus.SALE_CLOSED)

        tally = self.mint(ctx)
        status = WalletStatus.MINTED if tally.complete else WalletStatus.PARTIAL
        logger.info(f"Wallet {address} finished: {status.value} ({tally})")
        if tally.shortfall:
            logger.warning(f"Only {tally.submitted}/{tally.target} transactions were submitted")
        return WalletOutcome(
            address=address,
            status=status,
            tally=tally,
            units_minted=tally.confirmed * self.units_per_transaction(),
        )

    def _preflight(self, ctx: WalletContext) -> bool:
        """Log the mint preview and return whether the balance covers it"""
        symbol = self.config.native_token
        total = self.config.total
        window = ctx.window

        mint_cost = window.cost(total)
        gas_cost_per_tx = ctx.gas_price * self.config.gas_limit
        total_gas_cost = gas_cost_per_tx * self.transactions_needed()
        total_needed = mint_cost + total_gas_cost

        if window.price_per_unit == 0:
            logger.warning("NFT price is 0. This might be a free mint or an error.")
        if 0 < window.max_per_wallet < total:
            logger.warning(f"Requested {total} exceeds max mint per wallet ({window.max_per_wallet})")

        logger.info("=== MINT PREVIEW ===")
        logger.info(f"NFT Contract: {self.config.nft_address}")
        logger.info(f"Total Mint: {total} NFTs")
        logger.info(f"Price per NFT: {Web3.from_wei(window.price_per_unit, 'ether')} {symbol}")
        logger.info(f"Max Mint Per Wallet: {window.max_per_wallet}")
        logger.info(f"Total Mint Fee: {Web3.from_wei(mint_cost, 'ether')} {symbol}")
        logger.info(f"Gas Fee per Transaction: {Web3.from_wei(gas_cost_per_tx, 'ether')} {symbol}")
        logger.info(f"Total Needed: {Web3.from_wei(total_needed, 'ether')} {symbol}")
        logger.info(f"Wallet Balance: {Web3.from_wei(ctx.balance, 'ether')} {symbol}")
        logger.info(f"Mode: {self.__class__.__name__}")

        if ctx.balance < total_needed:
            logger.warning(f"Low balance! Need: {Web3.from_wei(total_needed, 'ether')} {symbol}, "
                           f"Have: {Web3.from_wei(ctx.balance, 'ether')} {symbol}")
            if not self.halt_on_low_balance:
                logger.warning("Continuing anyway, transactions may fail due to insufficient funds.")
            return False
        return True

    def _log_summary(self):
        logger.info("=== RUN SUMMARY ===")
        for outcome in self.outcomes:
            detail = f" ({outcome.tally})" if outcome.tally else ""
            if outcome.error:
                detail += f" error: {outcome.error}"
            logger.info(f"{outcome.address}: {outcome.status.value}, {outcome.units_minted} minted{detail}")
