import logging
import random
import time
from pathlib import Path
from typing import List

from requests.exceptions import RequestException

logger = logging.getLogger(__name__)


# Retry decorator with exponential backoff
def retry_with_backoff(max_retries=5, backoff_factor=1.5, sleep=time.sleep):
    """
    Decorator that retries the decorated function with exponential backoff

    Args:
        max_retries: Maximum number of attempts
        backoff_factor: Base wait in seconds, doubled on each retry
        sleep: Callable used to wait between attempts

    Returns:
        Decorated function with retry logic
    """
    def decorator(func):
        def wrapper(*args, **kwargs):
            retries = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except (RequestException, ConnectionError, TimeoutError) as e:
                    retries += 1
                    if retries >= max_retries:
                        logger.error(f"Max retries reached. Last error: {e}")
                        raise
                    wait_time = backoff_factor * (2 ** (retries - 1)) + random.uniform(0, 1)
                    logger.warning(f"Request failed with {e}. Retrying in {wait_time:.2f} seconds... "
                                   f"(Attempt {retries}/{max_retries})")
                    sleep(wait_time)
        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        return wrapper
    return decorator


def mask_key(private_key: str) -> str:
    """Show only the edges of a private key for logging."""
    if len(private_key) <= 10:
        return "***"
    return f"{private_key[:6]}...{private_key[-4:]}"


def short_hash(tx_hash: str, length: int = 10) -> str:
    return f"{tx_hash[:length]}..."


def normalize_private_key(raw_key: str) -> str:
    key = raw_key.strip()
    if not key.startswith("0x"):
        key = "0x" + key
    return key


def load_private_keys(path) -> List[str]:
    """
    Load private keys from a text file, one per line.

    Args:
        path: Path to the key file

    Returns:
        List of 0x-prefixed keys, blank lines skipped

    Raises:
        FileNotFoundError: If the key file does not exist
    """
    key_path = Path(path)
    if not key_path.exists():
        raise FileNotFoundError(f"{key_path} not found")

    with open(key_path, 'r') as f:
        keys = [normalize_private_key(line) for line in f if line.strip()]

    logger.info(f"Loaded {len(keys)} private key(s) from {key_path}")
    return keys
