"""
Response Cache Tests
"""
import pytest

from grantscope.cache import ResponseCache, content_key


class Producer:
    def __init__(self, value="computed"):
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.value


class TestGetOrCompute:
    """get_or_compute hit/miss behaviour"""

    def test_second_call_within_ttl_is_a_hit(self, clock):
        cache = ResponseCache(clock=clock)
        producer = Producer()

        assert cache.get_or_compute("k", producer, ttl=60) == "computed"
        clock.advance(59)
        assert cache.get_or_compute("k", producer, ttl=60) == "computed"
        assert producer.calls == 1

    def test_recomputes_after_ttl(self, clock):
        cache = ResponseCache(clock=clock)
        producer = Producer()

        cache.get_or_compute("k", producer, ttl=60)
        clock.advance(61)
        cache.get_or_compute("k", producer, ttl=60)
        assert producer.calls == 2

    def test_entry_at_exact_ttl_is_still_fresh(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("k", "v", ttl=60)
        clock.advance(60)
        assert cache.get("k") == "v"

    def test_default_ttl_used_when_none_given(self, clock):
        cache = ResponseCache(default_ttl=10, clock=clock)
        producer = Producer()
        cache.get_or_compute("k", producer)
        clock.advance(11)
        cache.get_or_compute("k", producer)
        assert producer.calls == 2

    def test_different_keys_compute_independently(self, clock):
        cache = ResponseCache(clock=clock)
        a, b = Producer("a"), Producer("b")
        assert cache.get_or_compute("a", a) == "a"
        assert cache.get_or_compute("b", b) == "b"
        assert (a.calls, b.calls) == (1, 1)

    def test_producer_error_propagates_and_is_not_cached(self, clock):
        cache = ResponseCache(clock=clock)

        def boom():
            raise RuntimeError("upstream down")

        with pytest.raises(RuntimeError):
            cache.get_or_compute("k", boom)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_falsy_values_are_cached(self, clock):
        cache = ResponseCache(clock=clock)
        producer = Producer(value="")
        cache.get_or_compute("k", producer)
        cache.get_or_compute("k", producer)
        assert producer.calls == 1

    def test_store_failure_falls_back_to_producer(self, clock, monkeypatch):
        cache = ResponseCache(clock=clock)

        def broken(key):
            raise RuntimeError("store corrupted")

        monkeypatch.setattr(cache, "_lookup", broken)
        producer = Producer()
        assert cache.get_or_compute("k", producer) == "computed"
        assert producer.calls == 1

    def test_write_failure_still_returns_value(self, clock, monkeypatch):
        cache = ResponseCache(clock=clock)

        def broken(*args, **kwargs):
            raise RuntimeError("store full")

        monkeypatch.setattr(cache, "set", broken)
        assert cache.get_or_compute("k", Producer()) == "computed"


class TestExpiry:
    """Lazy and scheduled eviction"""

    def test_expired_entry_removed_on_read(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("k", "v", ttl=5)
        clock.advance(6)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_evict_expired_only_drops_stale_entries(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("short", 1, ttl=5)
        cache.set("long", 2, ttl=500)
        clock.advance(10)
        assert cache.evict_expired() == 1
        assert cache.get("long") == 2

    def test_sweep_runs_from_set_after_interval(self, clock):
        cache = ResponseCache(sweep_interval=100, clock=clock)
        cache.set("old", 1, ttl=5)
        clock.advance(101)
        cache.set("new", 2, ttl=500)
        assert len(cache) == 1

    def test_delete_and_clear(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.delete("a")
        assert cache.get("a") is None
        cache.clear()
        assert len(cache) == 0


class TestContentKey:
    def test_same_bytes_same_key(self):
        assert content_key("process-pdf", b"%PDF-1") == content_key("process-pdf", b"%PDF-1")

    def test_route_discriminates(self):
        assert content_key("process-pdf", "x") != content_key("analyze-990", "x")

    def test_text_and_utf8_bytes_match(self):
        assert content_key("r", "héllo") == content_key("r", "héllo".encode("utf-8"))

    def test_md5_hex_format(self):
        key = content_key("analyze-990", "abc")
        assert key == "analyze-990:900150983cd24fb0d6963f7d28e17f72"
