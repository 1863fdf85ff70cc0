"""
Storage URL Resolution

Turns image references stored on catalog rows into URLs the admin panel
can render.
"""

from typing import Optional


class StorageUrlResolver:
    """
    Resolve storage-relative keys against the public bucket URL.

    Example:
        resolver = StorageUrlResolver("https://cdn.example.com/media")
        resolver.url("products/1.jpg")  # https://cdn.example.com/media/products/1.jpg
    """

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    def url(self, key: str) -> str:
        """Public URL for a storage key"""
        return f"{self.base_url}/{key.lstrip('/')}"

    def resolve(self, src: Optional[str]) -> Optional[str]:
        """
        Resolve an image reference.

        Absolute http(s) URLs pass through untouched, anything else is a
        storage key. Empty references resolve to None.
        """
        if not src:
            return None

        if src.startswith("http://") or src.startswith("https://"):
            return src

        return self.url(src)
