"""
Gas management utilities for mint transactions.
Resolves the gas price to bid and estimates gas limits with a safety margin.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional, Dict, Any

from web3 import Web3

logger = logging.getLogger(__name__)

DEFAULT_GAS_MULTIPLIER = 1.2
GAS_LIMIT_MARGIN = Decimal("1.2")


class GasPriceError(ValueError):
    """Raised when the resolved gas price is not a positive amount."""


def parse_gwei(value: str) -> int:
    """
    Parse a user gas price such as "5", "0.3" or "5 gwei" into wei.

    Raises:
        ValueError: If the value is not a finite decimal number
    """
    normalized = value.strip().lower().replace("gwei", "").strip()
    try:
        amount = Decimal(normalized)
    except InvalidOperation:
        raise ValueError(f"Invalid gas price {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Gas price {value!r} is not finite")
    return int(Web3.to_wei(amount, 'gwei'))


class GasManager:
    def __init__(self, web3: Web3, chain_id: int, gas_multiplier: float = DEFAULT_GAS_MULTIPLIER,
                 default_gas_limit: int = 150000):
        """
        Initialize GasManager with web3 instance and chain ID.

        Args:
            web3: Web3 instance (should already have middleware configured)
            chain_id: Blockchain network ID
            gas_multiplier: Factor applied to the node's suggested gas price
            default_gas_limit: Gas limit used when estimation fails
        """
        self.web3 = web3
        self.chain_id = chain_id
        self.gas_multiplier = Decimal(str(gas_multiplier))
        self.default_gas_limit = default_gas_limit

    def suggested_gas_price(self) -> int:
        """Node gas price scaled by the configured multiplier, in wei."""
        base_gas_price = self.web3.eth.gas_price
        gas_price = int(Decimal(base_gas_price) * self.gas_multiplier)
        logger.info(f"Base gas price: {Web3.from_wei(base_gas_price, 'gwei')} Gwei "
                    f"x {self.gas_multiplier}")
        return gas_price

    def resolve_gas_price(self, user_input: Optional[str] = None) -> int:
        """
        Resolve the gas price to bid.

        A blank input uses the node's suggested price times the multiplier.
        Anything else is read as Gwei; an unparseable value falls back to the
        suggested price instead of failing.

        Args:
            user_input: Optional gas price string in Gwei

        Returns:
            int: Gas price in wei

        Raises:
            GasPriceError: If the resolved price is zero or negative
        """
        if user_input is None or not str(user_input).strip():
            gas_price = self.suggested_gas_price()
        else:
            try:
                gas_price = parse_gwei(str(user_input))
            except ValueError as e:
                logger.warning(f"Invalid gas price input; falling back to node gas price "
                               f"* {self.gas_multiplier}. Error: {e}")
                gas_price = self.suggested_gas_price()

        if gas_price <= 0:
            raise GasPriceError(f"Resolved gas price must be positive, got {gas_price} wei")

        logger.info(f"Using Gas Price: {Web3.from_wei(gas_price, 'gwei')} Gwei")
        return gas_price

    def estimate_gas_limit(self, tx_params: Dict[str, Any], contract_call: Optional[Any] = None) -> int:
        """
        Estimate gas limit for a transaction with a 20% safety margin.

        Args:
            tx_params: Transaction parameters
            contract_call: Optional contract function call for estimation
        """
        try:
            if contract_call is not None:
                base_estimate = contract_call.estimate_gas(tx_params)
            else:
                base_estimate = self.web3.eth.estimate_gas(tx_params)

            safe_gas_limit = int(Decimal(base_estimate) * GAS_LIMIT_MARGIN)
            logger.info(f"Estimated gas: {base_estimate}, using limit {safe_gas_limit}")
            return safe_gas_limit

        except Exception as e:
            logger.error(f"Error estimating gas limit: {e}. Using default {self.default_gas_limit}")
            return self.default_gas_limit
