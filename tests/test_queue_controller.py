import pytest

from chessbench.backoff_policy import BackoffPolicy
from chessbench.cancellation import CancellationToken
from chessbench.errors import SourceFetchError
from chessbench.exclusion_ledger import ExclusionLedger
from chessbench.queue_controller import QueueController, QueueState
from tests.fakes import FakeSleep, ScriptedFetcher, make_record, make_records

POLICY = BackoffPolicy(base_s=2.0, factor=1.5, cap_s=15.0)


def _queue(
    fetcher: ScriptedFetcher,
    ledger: ExclusionLedger | None = None,
    *,
    max_empty_batches: int = 5,
    max_refill_attempts: int = 50,
    sleep: FakeSleep | None = None,
    cancellation: CancellationToken | None = None,
) -> QueueController:
    return QueueController(
        fetcher,
        ledger or ExclusionLedger(),
        batch_size=10,
        max_empty_batches=max_empty_batches,
        max_refill_attempts=max_refill_attempts,
        backoff=POLICY,
        cancellation=cancellation,
        sleep=sleep or FakeSleep(),
    )


def test_records_are_served_in_fetch_order() -> None:
    records = make_records("g", 3)
    queue = _queue(ScriptedFetcher([records]))

    drawn = [queue.next_record() for _ in range(3)]

    assert [record.game_id for record in drawn] == ["fx_g0", "fx_g1", "fx_g2"]
    assert queue.state is QueueState.DRAINING
    assert queue.pending == 0


def test_refill_filters_ledger_and_duplicates() -> None:
    a, b, c = make_records("g", 3)
    ledger = ExclusionLedger()
    ledger.mark_failed(b.game_id)
    queue = _queue(ScriptedFetcher([[a, a, b, c]]), ledger)

    assert queue.refill() == 2
    assert [queue.next_record().game_id, queue.next_record().game_id] == [a.game_id, c.game_id]


def test_queued_ids_are_not_requeued() -> None:
    a, b, c = make_records("g", 3)
    queue = _queue(ScriptedFetcher([[a, b], [a, c]]))

    assert queue.refill() == 2
    assert queue.refill() == 1
    assert queue.pending == 3


def test_cleared_failed_record_can_be_queued_again() -> None:
    record = make_record("retry")
    ledger = ExclusionLedger()
    queue = _queue(ScriptedFetcher([[record], [record], [record]]), ledger)

    assert queue.next_record().game_id == "fx_retry"
    ledger.mark_failed(record.game_id)
    assert queue.refill() == 0

    ledger.clear_failed(record.game_id)

    assert queue.refill() == 1
    assert queue.next_record().game_id == "fx_retry"


def test_fetch_receives_only_the_persisted_snapshot() -> None:
    ledger = ExclusionLedger(["fx_old"])
    ledger.mark_predicted("fx_session")
    fetcher = ScriptedFetcher([make_records("g", 1)])
    queue = _queue(fetcher, ledger)

    queue.refill()

    assert fetcher.calls == [(10, frozenset({"fx_old"}))]


def test_consecutive_empty_refills_back_off_then_exhaust() -> None:
    sleep = FakeSleep()
    queue = _queue(ScriptedFetcher([]), max_empty_batches=4, sleep=sleep)

    assert queue.next_record() is None

    assert queue.exhausted
    assert queue.empty_streak == 4
    assert sleep.delays == [2.0, 3.0, 4.5]


def test_non_empty_refill_resets_backoff() -> None:
    sleep = FakeSleep()
    queue = _queue(ScriptedFetcher([[], [], [make_record("g1")], [], []]), sleep=sleep)

    for _ in range(5):
        queue.refill()

    assert sleep.delays == [2.0, 3.0, 2.0]
    assert queue.empty_streak == 2
    assert not queue.exhausted


def test_source_fetch_error_counts_as_empty_refill() -> None:
    queue = _queue(ScriptedFetcher([SourceFetchError("all down")]))

    assert queue.refill() == 0
    assert queue.empty_streak == 1
    assert queue.state is QueueState.REFILLING


def test_refill_budget_exhausts_queue() -> None:
    fetcher = ScriptedFetcher([make_records("a", 1), make_records("b", 1), make_records("c", 1)])
    queue = _queue(fetcher, max_refill_attempts=2)

    assert queue.refill() == 1
    assert queue.refill() == 1
    assert queue.refill() == 0
    assert queue.exhausted
    assert len(fetcher.calls) == 2


def test_exhausted_queue_still_serves_its_backlog() -> None:
    fetcher = ScriptedFetcher([make_records("a", 2)])
    queue = _queue(fetcher, max_refill_attempts=1)

    assert queue.refill() == 2
    assert queue.refill() == 0
    assert queue.exhausted
    assert queue.next_record().game_id == "fx_a0"
    assert queue.next_record().game_id == "fx_a1"
    assert queue.next_record() is None
    assert len(fetcher.calls) == 1


def test_cancellation_during_backoff_stops_refill() -> None:
    token = CancellationToken()
    sleep = FakeSleep(cancellation=token, cancel_after=1)
    fetcher = ScriptedFetcher([])
    queue = _queue(fetcher, sleep=sleep, cancellation=token)

    assert queue.next_record() is None
    assert token.cancelled
    assert not queue.exhausted
    assert len(fetcher.calls) == 1


@pytest.mark.parametrize("streak", [1, 3, 6])
def test_wait_matches_backoff_policy(streak: int) -> None:
    sleep = FakeSleep()
    queue = _queue(ScriptedFetcher([]), max_empty_batches=10, sleep=sleep)
    for _ in range(streak + 1):
        queue.refill()

    assert sleep.delays[-1] == POLICY.delay(streak)
