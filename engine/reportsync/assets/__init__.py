"""Asset upload: MIME sniffing and the asset store client."""

from reportsync.assets.mime import MimeSniffer
from reportsync.assets.store import AssetStoreClient

__all__ = ["MimeSniffer", "AssetStoreClient"]
