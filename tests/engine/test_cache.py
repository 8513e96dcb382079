"""Tests for the bounded existence caches."""

import pytest

from shellgate.engine.cache import (
    COMMAND_NAMESPACE,
    FUNCTION_NAMESPACE,
    ExistenceCache,
    make_cache_key,
)


class TestCacheKeys:
    """Tests for cache key construction."""

    def test_unsafe_characters_replaced(self):
        """Every character outside [A-Za-z0-9_] becomes an underscore."""
        assert make_cache_key(COMMAND_NAMESPACE, "git-lfs") == "cmd_git_lfs"
        assert make_cache_key(COMMAND_NAMESPACE, "/usr/bin/env") == "cmd__usr_bin_env"
        assert make_cache_key(COMMAND_NAMESPACE, "mkfs.ext4") == "cmd_mkfs_ext4"

    def test_namespaces_do_not_collide(self):
        """The same name gets different keys in the two caches."""
        assert make_cache_key(COMMAND_NAMESPACE, "ls") != make_cache_key(FUNCTION_NAMESPACE, "ls")
        assert make_cache_key(FUNCTION_NAMESPACE, "ls") == "func_exists_ls"

    def test_key_for_uses_namespace(self):
        cache = ExistenceCache(10, namespace=FUNCTION_NAMESPACE)
        assert cache.key_for("my-func") == "func_exists_my_func"


class TestExistenceCache:
    """Tests for lookup, insert and eviction."""

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            ExistenceCache(0)

    def test_lookup_miss_returns_none(self):
        cache = ExistenceCache(4)
        assert cache.lookup("cmd_missing") is None

    def test_false_results_are_cached(self):
        """A negative existence result is a hit, not a miss."""
        cache = ExistenceCache(4)
        cache.insert("cmd_nope", False)

        assert cache.lookup("cmd_nope") is False
        assert "cmd_nope" in cache

    def test_reinsert_updates_in_place(self):
        """Re-inserting a key changes its value but not its age."""
        cache = ExistenceCache(4)
        cache.insert("a", True)
        cache.insert("b", True)
        cache.insert("a", False)

        assert cache.lookup("a") is False
        assert cache.keys() == ["a", "b"]
        assert len(cache) == 2

    def test_hits_do_not_change_order(self):
        """Eviction is FIFO, not LRU."""
        cache = ExistenceCache(2)
        cache.insert("a", True)
        cache.insert("b", True)
        cache.lookup("a")
        cache.insert("c", True)

        assert "a" not in cache
        assert cache.keys() == ["b", "c"]

    def test_no_eviction_at_capacity(self):
        cache = ExistenceCache(3)
        for key in ("a", "b", "c"):
            cache.insert(key, True)

        assert len(cache) == 3
        assert cache.evict_if_over_capacity() == 0

    def test_batch_eviction_removes_half(self):
        """Exceeding capacity drops the oldest capacity // 2 entries."""
        cache = ExistenceCache(100)
        for i in range(101):
            cache.insert(f"cmd_{i}", True)

        assert len(cache) == 51
        assert "cmd_0" not in cache
        assert "cmd_49" not in cache
        assert "cmd_50" in cache
        assert "cmd_100" in cache

    def test_capacity_one_evicts_single_entry(self):
        """Batch size never drops below one."""
        cache = ExistenceCache(1)
        cache.insert("a", True)
        cache.insert("b", True)

        assert cache.keys() == ["b"]
        assert len(cache) == 1

    @pytest.mark.parametrize("capacity", [1, 2, 3, 7, 10, 100])
    def test_retains_most_recent_keys(self, capacity):
        """After capacity + 1 inserts, exactly the newest keys survive."""
        cache = ExistenceCache(capacity)
        keys = [f"k{i}" for i in range(capacity + 1)]
        for key in keys:
            cache.insert(key, True)

        evicted = max(1, capacity // 2)
        assert len(cache) <= capacity
        assert cache.keys() == keys[evicted:]
        assert set(cache) == set(keys[-(capacity + 1 - evicted):])

    def test_size_matches_mapping_after_mutations(self):
        cache = ExistenceCache(4)
        for i in range(10):
            cache.insert(f"k{i}", i % 2 == 0)
        cache.discard("k9")
        cache.discard("unknown")

        assert len(cache) == len(cache.keys())

    def test_discard(self):
        cache = ExistenceCache(4)
        cache.insert("a", True)
        cache.insert("b", True)

        assert cache.discard("a") is True
        assert cache.discard("a") is False
        assert cache.keys() == ["b"]
        assert len(cache) == 1

    def test_clear(self):
        cache = ExistenceCache(4)
        cache.insert("a", True)
        cache.clear()

        assert len(cache) == 0
        assert cache.keys() == []
        assert cache.lookup("a") is None

    def test_eviction_is_logged(self, captured_logs):
        from shellgate.logging import Loggers

        cache = ExistenceCache(2, namespace=COMMAND_NAMESPACE, logger=Loggers.engine())
        for key in ("a", "b", "c"):
            cache.insert(key, True)

        evictions = [entry for entry in captured_logs if entry["event"] == "cache_evicted"]
        assert len(evictions) == 1
        assert evictions[0]["removed"] == 1
        assert evictions[0]["size"] == 2
        assert evictions[0]["log_level"] == "debug"
