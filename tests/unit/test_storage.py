"""
Unit Tests - Image URL Resolution
"""
import pytest

from marketplace_dashboard.serving.storage import StorageUrlResolver


class TestStorageUrlResolver:

    @pytest.fixture
    def resolver(self):
        return StorageUrlResolver("https://cdn.test/media/")

    @pytest.mark.parametrize("src", [
        "http://images.example.com/a.jpg",
        "https://images.example.com/a.jpg",
    ])
    def test_absolute_urls_pass_through(self, resolver, src):
        assert resolver.resolve(src) == src

    def test_storage_key_is_resolved(self, resolver):
        assert resolver.resolve("products/1/main.jpg") == "https://cdn.test/media/products/1/main.jpg"

    def test_leading_slash_is_not_doubled(self, resolver):
        assert resolver.resolve("/products/1.jpg") == "https://cdn.test/media/products/1.jpg"

    @pytest.mark.parametrize("src", [None, ""])
    def test_empty_is_none(self, resolver, src):
        assert resolver.resolve(src) is None
