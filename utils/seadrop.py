"""
SeaDrop sale view and MultiMint purchase contract wrappers.

Addresses are always passed in by the caller; the only constants here are the
ABIs and the public deployment addresses used as configuration defaults.
"""

import logging
from dataclasses import dataclass

from web3 import Web3

from utils.common_utils import retry_with_backoff

logger = logging.getLogger(__name__)

DEFAULT_SEADROP_ADDRESS = "0x00005EA00Ac477B1030CE78506496e8C2dE24bf5"
DEFAULT_MULTIMINT_ADDRESS = "0x0000419B4B6132e05DfBd89F65B165DFD6fA126F"

SEADROP_ABI = [
    {
        "inputs": [{"internalType": "address", "name": "nftContract", "type": "address"}],
        "name": "getPublicDrop",
        "outputs": [{
            "components": [
                {"internalType": "uint80", "name": "mintPrice", "type": "uint80"},
                {"internalType": "uint48", "name": "startTime", "type": "uint48"},
                {"internalType": "uint48", "name": "endTime", "type": "uint48"},
                {"internalType": "uint16", "name": "maxTotalMintableByWallet", "type": "uint16"},
                {"internalType": "uint16", "name": "feeBps", "type": "uint16"},
                {"internalType": "bool", "name": "restrictFeeRecipients", "type": "bool"}
            ],
            "internalType": "struct PublicDrop",
            "name": "",
            "type": "tuple"
        }],
        "stateMutability": "view",
        "type": "function"
    }
]

MULTIMINT_ABI = [
    {
        "inputs": [
            {"internalType": "uint256", "name": "total", "type": "uint256"},
            {"internalType": "address", "name": "nftaddress", "type": "address"}
        ],
        "name": "mintMulti",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function"
    }
]


class SaleWindowError(ValueError):
    """Raised when a drop's public sale window is unavailable or inconsistent."""


@dataclass(frozen=True)
class SaleWindow:
    price_per_unit: int
    start_time: int
    end_time: int
    max_per_wallet: int

    def __post_init__(self):
        if self.start_time > self.end_time:
            raise SaleWindowError(
                f"Sale window starts after it ends ({self.start_time} > {self.end_time})")

    def cost(self, quantity: int) -> int:
        return self.price_per_unit * quantity


def get_seadrop_contract(w3: Web3, seadrop_address: str):
    return w3.eth.contract(address=Web3.to_checksum_address(seadrop_address), abi=SEADROP_ABI)


def get_multimint_contract(w3: Web3, multimint_address: str):
    return w3.eth.contract(address=Web3.to_checksum_address(multimint_address), abi=MULTIMINT_ABI)


@retry_with_backoff(max_retries=3, backoff_factor=1)
def _read_public_drop(seadrop_contract, nft_address: str):
    return seadrop_contract.functions.getPublicDrop(nft_address).call()


def get_sale_window(w3: Web3, seadrop_address: str, nft_address: str) -> SaleWindow:
    """
    Read the public drop configuration for an NFT contract.

    Args:
        w3: Connected Web3 instance
        seadrop_address: SeaDrop contract address
        nft_address: NFT contract whose public drop is read

    Returns:
        SaleWindow snapshot

    Raises:
        SaleWindowError: If the drop cannot be read or is inconsistent
    """
    contract = get_seadrop_contract(w3, seadrop_address)
    nft_address = Web3.to_checksum_address(nft_address)
    try:
        drop = _read_public_drop(contract, nft_address)
    except Exception as e:
        raise SaleWindowError(f"Failed to read public drop for {nft_address}: {e}") from e

    if not drop:
        raise SaleWindowError(f"No public drop configured for {nft_address}")

    mint_price, start_time, end_time, max_per_wallet = drop[0], drop[1], drop[2], drop[3]
    window = SaleWindow(
        price_per_unit=int(mint_price),
        start_time=int(start_time),
        end_time=int(end_time),
        max_per_wallet=int(max_per_wallet),
    )
    logger.info(f"Public drop for {nft_address}: price={Web3.from_wei(window.price_per_unit, 'ether')}, "
                f"start={window.start_time}, end={window.end_time}, max/wallet={window.max_per_wallet}")
    return window


def build_purchase_call(multimint_contract, quantity: int, nft_address: str):
    """Return the bound mintMulti call for `quantity` units of `nft_address`."""
    return multimint_contract.functions.mintMulti(quantity, Web3.to_checksum_address(nft_address))
