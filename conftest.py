"""Shared fakes for the chain endpoint and contracts."""

import itertools

import pytest
from eth_account import Account
from web3 import Web3
from web3.exceptions import TimeExhausted, TransactionNotFound

from mint_config import MintConfig
from utils.seadrop import SaleWindow

TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
NFT_ADDRESS = "0x1111111111111111111111111111111111111111"
NOW = 1_700_000_000


def make_hash(i: int) -> str:
    return "0x" + format(i, "064x")


class FakeCall:
    def __init__(self, contract, name, args):
        self.contract = contract
        self.name = name
        self.args = args

    def call(self):
        return self.contract.public_drop

    def estimate_gas(self, params):
        if self.contract.estimate_error:
            raise self.contract.estimate_error
        return self.contract.gas_estimate

    def build_transaction(self, params):
        self.contract.built.append((self.args, dict(params)))
        tx = {
            'to': Web3.to_checksum_address(self.contract.address),
            'data': '0x' + 'ab' * 36,
            'value': params['value'],
            'gas': params['gas'],
            'gasPrice': params['gasPrice'],
            'nonce': params['nonce'],
            'chainId': params['chainId'],
        }
        return tx


class FakeFunctions:
    def __init__(self, contract):
        self._contract = contract

    def getPublicDrop(self, nft_address):
        return FakeCall(self._contract, 'getPublicDrop', (nft_address,))

    def mintMulti(self, total, nft_address):
        return FakeCall(self._contract, 'mintMulti', (total, nft_address))


class FakeContract:
    def __init__(self, address, public_drop=None, gas_estimate=100000):
        self.address = address
        self.public_drop = public_drop
        self.gas_estimate = gas_estimate
        self.estimate_error = None
        self.built = []
        self.functions = FakeFunctions(self)


class FakeEth:
    """
    Minimal stand-in for `w3.eth`.

    Sends listed in `fail_sends` (1-based call numbers) raise. Receipts are
    returned from `receipts`; when `auto_status` is set every sent hash gets a
    receipt with that status as soon as it is sent; `status_script` overrides
    it for the next sends in order.
    """

    def __init__(self, gas_price=100, chain_id=8453, balance=10 ** 20, nonce=0,
                 public_drop=None, auto_status=None):
        self.gas_price = gas_price
        self.chain_id = chain_id
        self.balance = balance
        self.nonce = nonce
        self.public_drop = public_drop
        self.auto_status = auto_status
        self.status_script = []
        self.fail_sends = set()
        self.receipts = {}
        self.receipt_errors = {}
        self.sent = []
        self.receipt_queries = []
        self.nonce_queries = 0
        self._send_calls = itertools.count(1)
        self.contracts = {}

    def contract(self, address, abi):
        if address not in self.contracts:
            self.contracts[address] = FakeContract(address, public_drop=self.public_drop)
        return self.contracts[address]

    def get_balance(self, address):
        return self.balance

    def get_transaction_count(self, address, block_identifier='latest'):
        self.nonce_queries += 1
        return self.nonce + len(self.sent)

    def estimate_gas(self, params):
        return 21000

    def send_raw_transaction(self, raw):
        call = next(self._send_calls)
        if call in self.fail_sends:
            raise ValueError(f"send #{call} rejected")
        tx_hash = Web3.keccak(raw)
        self.sent.append(Web3.to_hex(tx_hash))
        status = self.status_script.pop(0) if self.status_script else self.auto_status
        if status is not None:
            self.receipts[Web3.to_hex(tx_hash)] = {'status': status}
        return tx_hash

    def get_transaction_receipt(self, tx_hash):
        self.receipt_queries.append(tx_hash)
        if tx_hash in self.receipt_errors:
            raise self.receipt_errors[tx_hash]
        if tx_hash not in self.receipts:
            raise TransactionNotFound(f"Transaction with hash: {tx_hash} not found.")
        return self.receipts[tx_hash]

    def wait_for_transaction_receipt(self, tx_hash, timeout=120, poll_latency=0.1):
        if tx_hash not in self.receipts:
            raise TimeExhausted(f"Transaction {tx_hash} is not in the chain after {timeout} seconds")
        return self.receipts[tx_hash]


class FakeWeb3:
    def __init__(self, eth=None, connected=True):
        self.eth = eth or FakeEth()
        self.connected = connected

    def is_connected(self):
        return self.connected


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def account():
    return Account.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def active_drop():
    # mintPrice, startTime, endTime, maxTotalMintableByWallet, feeBps, restrictFeeRecipients
    return (10 ** 15, NOW - 60, NOW + 3600, 10, 0, False)


@pytest.fixture
def active_window():
    return SaleWindow(price_per_unit=10 ** 15, start_time=NOW - 60, end_time=NOW + 3600, max_per_wallet=10)


@pytest.fixture
def mint_config():
    return MintConfig(
        chain_name='base',
        chain_id=8453,
        native_token='ETH',
        rpc_urls=['http://localhost:8545'],
        private_keys=[TEST_PRIVATE_KEY],
        nft_address=NFT_ADDRESS,
        total=3,
        gas_price='1',
        dispatch_delay=0,
        poll_interval=0.01,
        max_poll_ticks=1000,
        max_retries=3,
    ).validate()
