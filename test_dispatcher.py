import random

import pytest

from conftest import make_hash
from utils.dispatcher import dispatch_purchases
from utils.pending_ledger import PendingLedger


class ScriptedSubmitter:
    """Accepts or rejects submissions following a per-call script."""

    def __init__(self, outcomes, ledger=None):
        self.outcomes = list(outcomes)
        self.calls = 0
        self.ledger = ledger
        self.visible_before_return = []

    def __call__(self, sequence):
        self.calls += 1
        if self.ledger is not None:
            self.visible_before_return.append(len(self.ledger))
        accepted = self.outcomes[self.calls - 1] if self.calls <= len(self.outcomes) else True
        if not accepted:
            raise ConnectionError("endpoint rejected submission")
        return make_hash(sequence)


def _no_sleep(_):
    pass


def test_all_accepted_stops_at_total():
    ledger = PendingLedger(target=3)
    submit = ScriptedSubmitter([True] * 10)
    attempts = dispatch_purchases(submit, 3, ledger, sleep=_no_sleep)

    assert submit.calls == 3
    assert [a.sequence_number for a in attempts] == [1, 2, 3]
    assert all(a.accepted for a in attempts)
    assert len(ledger.unchecked()) == 3


def test_failures_consume_attempt_budget():
    ledger = PendingLedger(target=3)
    submit = ScriptedSubmitter([False] * 10)
    attempts = dispatch_purchases(submit, 3, ledger, sleep=_no_sleep)

    assert submit.calls == 6
    assert not any(a.accepted for a in attempts)
    tally = ledger.tally()
    assert tally.attempted == 6
    assert tally.submitted == 0
    assert tally.shortfall == 3


def test_budget_exhausted_with_partial_success_is_surfaced():
    ledger = PendingLedger(target=3)
    submit = ScriptedSubmitter([True, False, False, True, False, False, True])
    dispatch_purchases(submit, 3, ledger, sleep=_no_sleep)

    tally = ledger.tally()
    assert submit.calls == 6
    assert tally.submitted == 2
    assert tally.shortfall == 1
    assert not tally.complete


@pytest.mark.parametrize("seed", range(20))
def test_attempts_bounded_and_stop_exactly_at_total(seed):
    rng = random.Random(seed)
    total = rng.randint(1, 8)
    outcomes = [rng.random() < 0.6 for _ in range(4 * total)]
    ledger = PendingLedger(target=total)

    attempts = dispatch_purchases(ScriptedSubmitter(outcomes), total, ledger, sleep=_no_sleep)

    accepted = sum(1 for a in attempts if a.accepted)
    assert len(attempts) <= 2 * total
    assert accepted <= total
    if accepted == total:
        assert attempts[-1].accepted
    else:
        assert len(attempts) == 2 * total
    assert ledger.tally().submitted == accepted


def test_entry_visible_only_after_submission_returns():
    ledger = PendingLedger(target=3)
    submit = ScriptedSubmitter([True, False, True, True], ledger=ledger)
    dispatch_purchases(submit, 3, ledger, sleep=_no_sleep)

    # ledger size seen inside each submit call: nothing from the in-flight call
    assert submit.visible_before_return == [0, 1, 1, 2]


def test_inter_attempt_delay_is_applied():
    sleeps = []
    dispatch_purchases(ScriptedSubmitter([True, True]), 2, PendingLedger(), delay=0.05, sleep=sleeps.append)
    assert sleeps == [0.05]


def test_should_stop_ends_dispatch_early():
    ledger = PendingLedger(target=5)
    submit = ScriptedSubmitter([True] * 5)
    dispatch_purchases(submit, 5, ledger, sleep=_no_sleep, should_stop=lambda: submit.calls >= 2)
    assert submit.calls == 2


def test_total_below_one_is_rejected():
    with pytest.raises(ValueError):
        dispatch_purchases(ScriptedSubmitter([]), 0, PendingLedger(), sleep=_no_sleep)


def test_malformed_hash_counts_as_failed_attempt():
    ledger = PendingLedger(target=3)
    calls = []

    def submit(sequence):
        calls.append(sequence)
        return "0xnothex" if sequence == 1 else make_hash(sequence)

    attempts = dispatch_purchases(submit, 3, ledger, sleep=_no_sleep)

    assert calls == [1, 2, 3, 4]
    assert not attempts[0].accepted
    assert ledger.tally().submitted == 3
    assert ledger.tally().attempted == 4
