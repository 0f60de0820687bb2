"""
Unit tests for ReferenceCache.
"""

import threading

from asset_import.reference_cache import (
    CUSTOMER,
    GROUP_TYPE_COMPANY,
    GROUP_TYPE_DEPARTMENT,
    SITE,
    ReferenceCache,
    ResolvedReference,
    group_kind,
)


class TestReferenceCache:
    """Tests for ReferenceCache."""

    def test_lookup_miss(self):
        cache = ReferenceCache()
        assert cache.lookup(SITE, "London") == (False, None)

    def test_store_and_lookup(self):
        cache = ReferenceCache()
        cache.store(SITE, "London", ResolvedReference("7", "London"))

        found, value = cache.lookup(SITE, "London")

        assert found is True
        assert value == ResolvedReference("7", "London")

    def test_kinds_are_separate(self):
        cache = ReferenceCache()
        cache.store(SITE, "Acme", ResolvedReference("1"))

        assert cache.lookup(group_kind(GROUP_TYPE_COMPANY), "Acme") == (False, None)

    def test_keys_are_exact(self):
        cache = ReferenceCache()
        cache.store(CUSTOMER, "jdoe", ResolvedReference("jdoe", "Jane Doe"))

        assert cache.lookup(CUSTOMER, "JDOE")[0] is False

    def test_warm(self):
        cache = ReferenceCache()

        loaded = cache.warm(CUSTOMER, {
            "jdoe": ("jdoe", "Jane Doe"),
            "asmith": ("asmith", "Alan Smith"),
        })

        assert loaded == 2
        assert cache.size(CUSTOMER) == 2
        assert cache.size(SITE) == 0
        assert len(cache) == 2
        assert cache.lookup(CUSTOMER, "asmith")[1].display_name == "Alan Smith"

    def test_group_kind(self):
        assert group_kind("5") == "group:5"

    def test_department_and_company_groups_are_separate(self):
        cache = ReferenceCache()
        cache.warm(group_kind(GROUP_TYPE_DEPARTMENT), {"Finance": ("fin", "Finance")})

        assert cache.size(group_kind(GROUP_TYPE_COMPANY)) == 0
        assert cache.lookup(group_kind(GROUP_TYPE_DEPARTMENT), "Finance")[1].identifier == "fin"

    def test_concurrent_stores_and_warms(self):
        cache = ReferenceCache()

        def store(worker):
            for i in range(200):
                cache.store(SITE, f"site-{worker}-{i}", ResolvedReference(str(i)))
                cache.lookup(SITE, f"site-{worker}-{i}")
                cache.size(SITE)

        def warm():
            cache.warm(CUSTOMER, {f"user-{i}": (str(i), f"User {i}") for i in range(500)})

        threads = [threading.Thread(target=store, args=(w,)) for w in range(4)]
        threads.append(threading.Thread(target=warm))
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert cache.size(SITE) == 800
        assert cache.size(CUSTOMER) == 500
        assert len(cache) == 1300
