"""Integration tests for shared Bloom filters.

Every test runs once per store backend.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from sharedbloom import (
    BloomFilter,
    ConfigError,
    ConsistencyError,
    CountingBloomFilter,
    EncodingError,
    MemoryStore,
    UnderflowError,
)
from sharedbloom.hashing import HASH_VERSION


def test_plain_scenario(store):
    """Test adding two words to a plain filter."""
    bf = BloomFilter(store, "bf", 1000, 0.01)
    bf.add("hello")
    bf.add("world")

    assert bf.exists("hello")
    assert bf.exists("world")
    assert not bf.exists("nonexistent-xyz")


def test_counting_scenario(store):
    """Test count and removal on a counting filter."""
    cbf = CountingBloomFilter(store, "cbf", 1000, 0.01)
    cbf.add("hello")
    cbf.add("world")
    assert cbf.count() == 2

    cbf.remove("hello")
    assert not cbf.exists("hello")
    assert cbf.exists("world")
    assert cbf.count() == 1


def test_no_false_negatives_through_fresh_handle(store):
    """Test that a second handle on the same name sees every add."""
    writer = BloomFilter(store, "bf", 1000, 0.01)
    keys = [f"key{i}" for i in range(300)]
    for key in keys:
        writer.add(key)

    reader = BloomFilter(store, "bf", 1000, 0.01)
    for key in keys:
        assert reader.exists(key), f"False negative for {key}"
        assert key in reader


def test_counting_no_false_negatives_through_fresh_handle(store):
    """Test shared counters across handles."""
    writer = CountingBloomFilter(store, "cbf", 1000, 0.01)
    for i in range(100):
        writer.add(f"key{i}")

    reader = CountingBloomFilter(store, "cbf", 1000, 0.01)
    assert reader.count() == 100
    assert all(reader.exists(f"key{i}") for i in range(100))


def test_plain_add_is_idempotent(store):
    """Test that retrying an add changes nothing."""
    bf = BloomFilter(store, "bf", 1000, 0.01)
    bf.add(b"duplicate_key")
    filled = bf.estimate_false_positive_rate()
    bf.add(b"duplicate_key")

    assert bf.exists(b"duplicate_key")
    assert bf.estimate_false_positive_rate() == filled


def test_counting_add_is_not_idempotent(store):
    """Test that every add of the same element counts."""
    cbf = CountingBloomFilter(store, "cbf", 1000, 0.01)
    cbf.add("same")
    cbf.add("same")
    assert cbf.count() == 2

    cbf.remove("same")
    assert cbf.exists("same")
    cbf.remove("same")
    assert not cbf.exists("same")
    assert cbf.count() == 0


def test_counting_symmetry(store):
    """Test that add then remove restores membership of absent elements."""
    cbf = CountingBloomFilter(store, "cbf", 1000, 0.01)
    for i in range(200):
        cbf.add(f"resident{i}")

    probes = [f"probe{i}" for i in range(50)]
    before = {probe: cbf.exists(probe) for probe in probes}
    for probe in probes:
        cbf.add(probe)
        assert cbf.exists(probe)
        cbf.remove(probe)
        assert cbf.exists(probe) == before[probe]

    assert cbf.count() == 200
    assert all(cbf.exists(f"resident{i}") for i in range(200))


def test_remove_from_empty_filter_underflows(store):
    """Test removing from a filter nothing was added to."""
    cbf = CountingBloomFilter(store, "cbf", 1000, 0.01)

    with pytest.raises(UnderflowError) as excinfo:
        cbf.remove("ghost")

    assert excinfo.value.filter_name == "cbf"
    assert excinfo.value.operation == "remove"
    assert str(excinfo.value).startswith("cbf: remove: ")
    assert cbf.count() == 0


def test_remove_of_absent_element_changes_nothing(store):
    """Test that a rejected removal leaves other elements intact."""
    cbf = CountingBloomFilter(store, "cbf", 1000, 0.01)
    for i in range(20):
        cbf.add(f"key{i}")

    absent = next(f"ghost{i}" for i in range(100) if not cbf.exists(f"ghost{i}"))
    with pytest.raises(UnderflowError):
        cbf.remove(absent)

    assert cbf.count() == 20
    assert all(cbf.exists(f"key{i}") for i in range(20))


def test_false_positive_rate_conformance(store):
    """Test the empirical false positive rate at design capacity."""
    if not isinstance(store, MemoryStore):
        pytest.skip("rate depends only on hashing; measured once")

    bf = BloomFilter(store, "bf", 1000, 0.01)
    for i in range(1000):
        bf.add(f"member-{i}")

    false_positives = sum(bf.exists(f"outsider-{i}") for i in range(10_000))
    actual_fpr = false_positives / 10_000

    assert actual_fpr <= 0.02, f"FPR too high: {actual_fpr}"


def test_estimate_false_positive_rate(store):
    """Test the fill based estimate for both filter kinds."""
    bf = BloomFilter(store, "bf", 200, 0.01)
    cbf = CountingBloomFilter(store, "cbf", 200, 0.01)
    assert bf.estimate_false_positive_rate() == 0.0
    assert cbf.estimate_false_positive_rate() == 0.0

    for i in range(200):
        bf.add(f"key{i}")
        cbf.add(f"key{i}")

    assert 0.002 < bf.estimate_false_positive_rate() < 0.03
    assert cbf.estimate_false_positive_rate() == pytest.approx(bf.estimate_false_positive_rate())

    for i in range(200):
        cbf.remove(f"key{i}")
    assert cbf.estimate_false_positive_rate() == 0.0


def test_concurrent_adds_are_not_lost(store):
    """Test that parallel adds on one named filter all land."""
    cbf = CountingBloomFilter(store, "cbf", 1000, 0.01)
    elements = [f"element-{i}" for i in range(200)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(cbf.add, elements))

    assert cbf.count() == len(elements)
    assert all(cbf.exists(element) for element in elements)


def test_concurrent_removes_and_adds(store):
    """Test that removals never fail because of adds on the same filter."""
    cbf = CountingBloomFilter(store, "cbf", 2000, 0.01)
    residents = [f"resident-{i}" for i in range(200)]
    arrivals = [f"arrival-{i}" for i in range(200)]
    for element in residents:
        cbf.add(element)

    with ThreadPoolExecutor(max_workers=16) as pool:
        removals = [pool.submit(cbf.remove, element) for element in residents]
        additions = [pool.submit(cbf.add, element) for element in arrivals]
        for future in removals + additions:
            future.result()

    assert cbf.count() == len(arrivals)
    assert all(cbf.exists(element) for element in arrivals)


def test_concurrent_handles_share_state(store):
    """Test one handle per worker against the same name."""
    def worker(i):
        handle = CountingBloomFilter(store, "cbf", 1000, 0.01)
        handle.add(f"element-{i}")

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(worker, range(50)))

    cbf = CountingBloomFilter(store, "cbf", 1000, 0.01)
    assert cbf.count() == 50


def test_reopen_with_different_sizing_fails(store):
    """Test the consistency guard on mismatched parameters."""
    BloomFilter(store, "bf", 1000, 0.01)

    with pytest.raises(ConsistencyError) as excinfo:
        BloomFilter(store, "bf", 2000, 0.01)
    assert excinfo.value.operation == "open"
    assert excinfo.value.filter_name == "bf"

    with pytest.raises(ConsistencyError):
        BloomFilter(store, "bf", 1000, 0.001)

    # The original sizing still opens
    BloomFilter(store, "bf", 1000, 0.01)


def test_reopen_as_other_kind_fails(store):
    """Test that a plain filter cannot be opened as a counting one."""
    BloomFilter(store, "shared", 1000, 0.01)
    with pytest.raises(ConsistencyError, match="kind"):
        CountingBloomFilter(store, "shared", 1000, 0.01)


def test_reopen_with_other_hash_version_fails(store):
    """Test that a filter populated with another hash family is refused."""
    store.setdefault_config("old:config", {
        "kind": "bloom",
        "hash_version": "fnv1a/v0",
        "expected_items": "1000",
        "false_positive_rate": "0.01",
        "bit_count": "9586",
        "hash_count": "7",
    })

    with pytest.raises(ConsistencyError, match="hash_version"):
        BloomFilter(store, "old", 1000, 0.01)
    assert HASH_VERSION != "fnv1a/v0"


@pytest.mark.parametrize("args", [(0, 0.01), (1000, 0.0), (1000, 1.0), (-5, 0.5)])
def test_invalid_sizing_fails(store, args):
    """Test that bad sizing is rejected before touching the store."""
    with pytest.raises(ConfigError) as excinfo:
        BloomFilter(store, "bf", *args)
    assert excinfo.value.operation == "open"
    assert store.get_counters("bf:config", ["bit_count"]) == [0]


def test_invalid_store_fails():
    """Test that objects without store operations are rejected."""
    with pytest.raises(ConfigError):
        CountingBloomFilter(object(), "cbf", 1000, 0.01)


@pytest.mark.parametrize("element", ["", b"", 42, None])
def test_invalid_elements_fail(store, element):
    """Test that elements without a serialization are rejected."""
    bf = BloomFilter(store, "bf", 1000, 0.01)
    with pytest.raises(EncodingError) as excinfo:
        bf.add(element)
    assert excinfo.value.operation == "add"
    assert excinfo.value.filter_name == "bf"


def test_text_and_bytes_are_one_element(store):
    """Test that str and its UTF-8 bytes address the same element."""
    cbf = CountingBloomFilter(store, "cbf", 1000, 0.01)
    cbf.add("héllo")
    assert cbf.exists("héllo".encode("utf-8"))
    cbf.remove("héllo".encode("utf-8"))
    assert cbf.count() == 0


def test_filter_exposes_config(store):
    """Test the read-only sizing accessors."""
    bf = BloomFilter(store, "bf", 1000, 0.01)
    assert bf.name == "bf"
    assert bf.config.bit_count == 9586
    assert bf.config.hash_count == 7
    assert "bit_count=9586" in repr(bf)


def test_shared_filter_base_is_abstract(store):
    """Test that only the concrete filter kinds can be opened."""
    from sharedbloom.bloomfilter import _SharedFilter

    with pytest.raises(TypeError):
        _SharedFilter(store, "bf", 1000, 0.01)
