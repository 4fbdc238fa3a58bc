import pytest

from conftest import FakeEth, FakeWeb3
from utils.web3_utils import connect_with_fallback


def test_falls_back_past_unreachable_and_wrong_chain():
    endpoints = {
        'http://down': FakeWeb3(connected=False),
        'http://mainnet': FakeWeb3(FakeEth(chain_id=1)),
        'http://base': FakeWeb3(FakeEth(chain_id=8453)),
    }
    tried = []

    def factory(url, chain_id):
        tried.append(url)
        return endpoints[url]

    w3 = connect_with_fallback(list(endpoints), 8453, factory=factory)
    assert w3 is endpoints['http://base']
    assert tried == ['http://down', 'http://mainnet', 'http://base']


def test_factory_errors_are_skipped():
    def factory(url, chain_id):
        if url == 'http://broken':
            raise OSError("connection refused")
        return FakeWeb3()

    w3 = connect_with_fallback(['http://broken', 'http://ok'], 8453, factory=factory)
    assert w3.is_connected()


def test_all_failing_raises_connection_error():
    with pytest.raises(ConnectionError, match="All RPCs failed"):
        connect_with_fallback(['http://down'], 8453, factory=lambda url, cid: FakeWeb3(connected=False))
    with pytest.raises(ConnectionError, match="No RPCs"):
        connect_with_fallback([], 8453)
