import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional

from web3 import Web3

from utils.common_utils import load_private_keys, normalize_private_key
from utils.confirmation_poller import DEFAULT_POLL_INTERVAL
from utils.dispatcher import DEFAULT_DISPATCH_DELAY
from utils.gas_manager import DEFAULT_GAS_MULTIPLIER
from utils.seadrop import DEFAULT_MULTIMINT_ADDRESS, DEFAULT_SEADROP_ADDRESS

logger = logging.getLogger(__name__)

DEFAULT_GAS_LIMIT = 150000
DEFAULT_MAX_POLL_TICKS = 300
DEFAULT_MAX_RETRIES = 3


class ConfigError(ValueError):
    """Raised when required configuration is missing or invalid."""


def _optional(cast, value):
    return None if value is None else cast(value)


@dataclass
class MintConfig:
    """Everything a mint run needs, gathered once before any wallet is processed."""

    chain_name: str
    chain_id: int
    native_token: str
    rpc_urls: List[str]
    private_keys: List[str]
    seadrop_address: str = DEFAULT_SEADROP_ADDRESS
    multimint_address: str = DEFAULT_MULTIMINT_ADDRESS

    nft_address: Optional[str] = None
    total: int = 1
    gas_price: str = ""
    gas_limit: int = DEFAULT_GAS_LIMIT
    gas_multiplier: float = DEFAULT_GAS_MULTIPLIER

    dispatch_delay: float = DEFAULT_DISPATCH_DELAY
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_poll_ticks: Optional[int] = DEFAULT_MAX_POLL_TICKS
    poll_timeout: Optional[float] = None
    max_retries: int = DEFAULT_MAX_RETRIES

    @classmethod
    def from_file(cls, config_file, chain_name: str, key_file=None) -> "MintConfig":
        """
        Load configuration for one chain from a JSON config file.

        Args:
            config_file: Path to config.json
            chain_name: Key under "chains"
            key_file: Optional private key file overriding "private_key_file"

        Raises:
            ConfigError: If the file, chain or keys are missing
        """
        config_path = Path(config_file)
        try:
            with open(config_path, 'r') as f:
                config = json.load(f)
        except FileNotFoundError:
            raise ConfigError(f"{config_path} not found")
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON format in {config_path}: {e}")

        chains = config.get('chains', {})
        if chain_name not in chains:
            raise ConfigError(f"Chain '{chain_name}' not found in {config_path}")
        chain_config = chains[chain_name]

        if 'chain_id' not in chain_config:
            raise ConfigError(f"Chain '{chain_name}' has no chain_id")

        rpc_urls = []
        if chain_config.get('rpc_url'):
            rpc_urls.append(chain_config['rpc_url'])
        rpc_urls.extend(chain_config.get('alternative_rpcs', []))

        contracts = config.get('contracts', {})
        mint = config.get('mint', {})

        private_keys = cls._load_keys(config, config_path.parent, key_file)

        try:
            mint_config = cls(
                chain_name=chain_name,
                chain_id=int(chain_config['chain_id']),
                native_token=chain_config.get('native_token', 'ETH'),
                rpc_urls=rpc_urls,
                private_keys=private_keys,
                seadrop_address=contracts.get('seadrop', DEFAULT_SEADROP_ADDRESS),
                multimint_address=contracts.get('multimint', DEFAULT_MULTIMINT_ADDRESS),
                nft_address=mint.get('nft_address'),
                total=int(mint.get('total', 1)),
                gas_price=str(mint.get('gas_price', '') or ''),
                gas_limit=int(mint.get('gas_limit', DEFAULT_GAS_LIMIT)),
                gas_multiplier=float(mint.get('gas_multiplier', DEFAULT_GAS_MULTIPLIER)),
                dispatch_delay=float(mint.get('dispatch_delay', DEFAULT_DISPATCH_DELAY)),
                poll_interval=float(mint.get('poll_interval', DEFAULT_POLL_INTERVAL)),
                max_poll_ticks=_optional(int, mint.get('max_poll_ticks', DEFAULT_MAX_POLL_TICKS)),
                poll_timeout=_optional(float, mint.get('poll_timeout')),
                max_retries=int(mint.get('max_retries', DEFAULT_MAX_RETRIES)),
            )
        except (TypeError, ValueError, KeyError) as e:
            raise ConfigError(f"Invalid value in {config_path}: {e}") from e
        logger.info(f"Loaded configuration for chain: {chain_name} ({mint_config.chain_id})")
        return mint_config

    @staticmethod
    def _load_keys(config: dict, base_dir: Path, key_file=None) -> List[str]:
        if key_file is None and 'wallets' in config:
            try:
                return [normalize_private_key(w['private_key']) for w in config['wallets']]
            except (TypeError, KeyError, AttributeError) as e:
                raise ConfigError(f"Invalid wallets entry: missing or malformed {e}")

        key_path = Path(key_file or config.get('private_key_file', 'pk.txt'))
        if not key_path.is_absolute() and not key_path.exists():
            key_path = base_dir / key_path
        try:
            return load_private_keys(key_path)
        except FileNotFoundError as e:
            raise ConfigError(str(e))

    def with_overrides(self, **overrides) -> "MintConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> "MintConfig":
        """
        Check the values a mint run cannot do without.

        Raises:
            ConfigError: On the first missing or invalid value
        """
        if not self.rpc_urls:
            raise ConfigError(f"No RPCs configured for chain '{self.chain_name}'")
        if not self.private_keys:
            raise ConfigError("No private keys found")
        if not self.nft_address:
            raise ConfigError("NFT contract address is required")
        if not Web3.is_address(self.nft_address):
            raise ConfigError(f"Invalid NFT contract address: {self.nft_address}")
        for name in ('seadrop_address', 'multimint_address'):
            if not Web3.is_address(getattr(self, name)):
                raise ConfigError(f"Invalid {name}: {getattr(self, name)}")
        if self.total < 1:
            raise ConfigError(f"Total mint per wallet must be at least 1, got {self.total}")
        if self.gas_limit <= 0:
            raise ConfigError(f"Gas limit must be positive, got {self.gas_limit}")
        if self.gas_multiplier <= 0:
            raise ConfigError(f"Gas multiplier must be positive, got {self.gas_multiplier}")
        if self.poll_interval < 0 or self.dispatch_delay < 0:
            raise ConfigError("Delays must not be negative")
        if self.max_poll_ticks is not None and self.max_poll_ticks < 1:
            raise ConfigError(f"max_poll_ticks must be at least 1, got {self.max_poll_ticks}")
        if self.poll_timeout is not None and self.poll_timeout <= 0:
            raise ConfigError(f"poll_timeout must be positive, got {self.poll_timeout}")
        if self.max_retries < 1:
            raise ConfigError(f"max_retries must be at least 1, got {self.max_retries}")
        self.nft_address = Web3.to_checksum_address(self.nft_address)
        return self
