from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from hypermerge import (
    ButterflyMerger,
    CommunicationError,
    ConfigurationError,
    LocalGroup,
    MergeConfig,
    ProtocolViolation,
    WorkerState,
    num_rounds,
    run_local,
)

# Keeps a broken test from hanging the run
TIMEOUT = MergeConfig(timeout=5.0)


def test_primes_on_four_ranks():
    lists = [[2, 11], [3, 13], [5, 7], [17, 19]]
    results = run_local(lists, TIMEOUT)
    root = results[0]
    assert root.is_root
    assert root.final_list.tolist() == [2, 3, 5, 7, 11, 13, 17, 19]
    assert root.count == 8
    assert root.rounds == 2


def test_three_ranks_with_partner_out_of_range():
    results = run_local([[1, 4], [2, 8], [0, 3, 9]], TIMEOUT)
    assert results[0].final_list.tolist() == [0, 1, 2, 3, 4, 8, 9]
    # rank 2 skips its first round and sends in the second
    assert results[2].rounds == 2
    assert results[2].sends == 1


def test_empty_lists_dont_change_result():
    results = run_local([[], [1, 5, 6], [], [2, 3]], TIMEOUT)
    assert results[0].final_list.tolist() == [1, 2, 3, 5, 6]
    assert results[0].count == 5


def test_partner_with_nothing_to_send():
    results = run_local([[4, 5, 6], []], TIMEOUT)
    assert results[0].final_list.tolist() == [4, 5, 6]
    assert results[1].sends == 1


def test_all_empty():
    results = run_local([[], [], []], TIMEOUT)
    assert results[0].final_list.tolist() == []
    assert results[0].count == 0


def test_single_rank():
    results = run_local([[1, 2, 2]], TIMEOUT)
    assert results[0].final_list.tolist() == [1, 2, 2]
    assert results[0].rounds == 0
    assert results[0].sends == 0


@pytest.mark.parametrize("size", [1, 2, 3, 4, 5, 6, 7, 8, 11, 16])
def test_random_lists(size):
    rng = np.random.default_rng(size)
    lists = [np.sort(rng.integers(0, 50, rng.integers(0, 12))) for _ in range(size)]
    results = run_local(lists, TIMEOUT)

    expected = np.sort(np.concatenate(lists))
    root = results[0]
    assert root.final_list.tolist() == expected.tolist()
    assert root.rounds == num_rounds(size)
    assert root.state is WorkerState.ACTIVE
    for result in results[1:]:
        assert result.state is WorkerState.RETIRED
        assert result.sends == 1
        assert len(result.final_list) == 0


def test_float_items():
    config = MergeConfig(dtype=np.float64, timeout=5.0)
    results = run_local([[0.5, 2.5], [-1.0], [1.5]], config)
    assert results[0].final_list.tolist() == [-1.0, 0.5, 1.5, 2.5]


def test_unsorted_input_rejected():
    with pytest.raises(ConfigurationError, match="rank 1"):
        run_local([[1, 2], [3, 1]], TIMEOUT)


def test_nested_input_rejected():
    with pytest.raises(ConfigurationError):
        run_local([[[1, 2]], [[3, 4]]], TIMEOUT)


def test_float_items_not_truncated_to_ints():
    with pytest.raises(ConfigurationError, match="float64"):
        run_local([[0.5, 0.7], [1.9]], TIMEOUT)


def test_unsorted_floats_checked_before_conversion():
    config = MergeConfig(dtype=np.float64, timeout=5.0)
    with pytest.raises(ConfigurationError, match="not sorted"):
        run_local([[0.9, 0.1], [2]], config)


def test_ints_merge_as_floats():
    config = MergeConfig(dtype=np.float64, timeout=5.0)
    results = run_local([[1, 3], [0.5, 2.5], []], config)
    assert results[0].final_list.tolist() == [0.5, 1.0, 2.5, 3.0]


def test_no_ranks_rejected():
    with pytest.raises(ConfigurationError):
        run_local([])


def test_retired_merger_cannot_run_again():
    group = LocalGroup(2)
    t0, t1 = group.transports()
    m0 = ButterflyMerger(t0, TIMEOUT)
    m1 = ButterflyMerger(t1, TIMEOUT)
    with ThreadPoolExecutor(max_workers=2) as pool:
        f0 = pool.submit(m0.merge, [1])
        f1 = pool.submit(m1.merge, [2])
        assert f0.result().final_list.tolist() == [1, 2]
        f1.result()
    with pytest.raises(ConfigurationError):
        m1.merge([3])


def test_wrong_length_message_is_a_protocol_violation():
    group = LocalGroup(2)
    t0, t1 = group.transports()
    merger = ButterflyMerger(t0, TIMEOUT)
    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(merger.merge, [1, 2])
        # Rank 1 announces two items, then sends three
        t1.allgather(2, timeout=5.0)
        t1.send(np.array([5, 6, 7]), 0, 0)
        with pytest.raises(ProtocolViolation) as info:
            future.result()
    err = info.value
    assert (err.rank, err.round, err.partner) == (0, 0, 1)
    assert "rank 0, round 0, partner 1" in str(err)


def test_missing_partner_times_out():
    group = LocalGroup(2)
    t0, t1 = group.transports()
    merger = ButterflyMerger(t0, MergeConfig(timeout=0.05))
    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(merger.merge, [1, 2])
        # Rank 1 joins the count exchange and then disappears
        t1.allgather(3, timeout=5.0)
        with pytest.raises(CommunicationError) as info:
            future.result()
    assert info.value.round == 0
    assert info.value.partner == 1


def test_count_exchange_without_peers_fails():
    t0 = LocalGroup(2).transport(0)
    merger = ButterflyMerger(t0, MergeConfig(timeout=0.05))
    with pytest.raises(CommunicationError):
        merger.merge([1])
