import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError

from conftest import NFT_ADDRESS, FakeEth, FakeWeb3
from utils.common_utils import mask_key, normalize_private_key, retry_with_backoff
from utils.seadrop import DEFAULT_SEADROP_ADDRESS, SaleWindowError, get_sale_window


def test_get_sale_window_maps_public_drop(active_drop):
    window = get_sale_window(FakeWeb3(FakeEth(public_drop=active_drop)), DEFAULT_SEADROP_ADDRESS, NFT_ADDRESS)

    assert window.price_per_unit == 10 ** 15
    assert window.max_per_wallet == 10
    assert window.cost(3) == 3 * 10 ** 15
    assert window.start_time < window.end_time


def test_get_sale_window_rejects_missing_or_inverted_drop():
    with pytest.raises(SaleWindowError, match="No public drop"):
        get_sale_window(FakeWeb3(FakeEth(public_drop=None)), DEFAULT_SEADROP_ADDRESS, NFT_ADDRESS)
    with pytest.raises(SaleWindowError, match="starts after it ends"):
        get_sale_window(FakeWeb3(FakeEth(public_drop=(0, 200, 100, 0, 0, False))),
                        DEFAULT_SEADROP_ADDRESS, NFT_ADDRESS)


def test_retry_with_backoff_retries_then_raises():
    sleeps = []
    calls = []

    @retry_with_backoff(max_retries=3, backoff_factor=1, sleep=sleeps.append)
    def flaky():
        calls.append(1)
        raise RequestsConnectionError("reset by peer")

    with pytest.raises(RequestsConnectionError):
        flaky()
    assert len(calls) == 3
    assert len(sleeps) == 2
    assert 1 <= sleeps[0] <= 2
    assert 2 <= sleeps[1] <= 3


def test_retry_with_backoff_returns_after_recovery():
    attempts = iter([TimeoutError("slow"), None])

    @retry_with_backoff(max_retries=3, sleep=lambda _: None)
    def recovers():
        error = next(attempts)
        if error:
            raise error
        return "ok"

    assert recovers() == "ok"


def test_key_helpers():
    assert normalize_private_key("  abcd\n") == "0xabcd"
    assert mask_key("0x" + "ab" * 32) == "0xabab...abab"
    assert mask_key("short") == "***"
