"""Utility functions for Web3 initialization and configuration"""

import logging
from typing import Iterable

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

logger = logging.getLogger(__name__)

# BSC mainnet/testnet, Polygon, Polygon Amoy, Gnosis
POA_CHAIN_IDS = (56, 97, 137, 80002, 100)


def get_web3_connection(rpc_url: str, chain_id: int, timeout: int = 30) -> Web3:
    """
    Initialize Web3 connection with proper middleware configuration.

    Args:
        rpc_url: RPC endpoint URL
        chain_id: Chain ID to determine middleware needs
        timeout: HTTP request timeout in seconds

    Returns:
        Web3 instance with proper configuration
    """
    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={'timeout': timeout}))

    if chain_id in POA_CHAIN_IDS:
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        logger.info(f"Injected PoA middleware for chain ID {chain_id}")

    return w3


def connect_with_fallback(rpc_urls: Iterable[str], chain_id: int, factory=get_web3_connection) -> Web3:
    """
    Connect to the first reachable RPC whose chain ID matches.

    Args:
        rpc_urls: Endpoints in order of preference
        chain_id: Expected chain ID
        factory: Callable building a Web3 instance for one endpoint

    Returns:
        Connected Web3 instance

    Raises:
        ConnectionError: If no endpoint is reachable on the expected chain
    """
    rpc_urls = list(rpc_urls)
    if not rpc_urls:
        raise ConnectionError(f"No RPCs configured for chain ID {chain_id}")

    for rpc_url in rpc_urls:
        try:
            w3 = factory(rpc_url, chain_id)
            if not w3.is_connected():
                logger.warning(f"RPC {rpc_url[:50]} is not reachable")
                continue
            remote_chain_id = w3.eth.chain_id
            if remote_chain_id != chain_id:
                logger.warning(f"RPC {rpc_url[:50]} is on chain {remote_chain_id}, expected {chain_id}")
                continue
            logger.info(f"Connected to RPC: {rpc_url[:50]}")
            return w3
        except Exception as e:
            logger.warning(f"Failed to connect to RPC {rpc_url[:50]}: {e}")

    raise ConnectionError(f"All RPCs failed for chain ID {chain_id}")
