"""
reportsync — URI transforms applied to every published asset.
"""

import uuid

import httpx


def watermark_uri(uri: str, type: str) -> str:
    """Tag an asset URI with its MIME subtype (`?cml=png`) so platforms render it inline."""
    return str(httpx.URL(uri).copy_add_param("cml", type))


def preventcache_uri(uri: str) -> str:
    """Append a random `cache-bypass` parameter so platform image proxies refetch."""
    return str(httpx.URL(uri).copy_add_param("cache-bypass", str(uuid.uuid4())))
