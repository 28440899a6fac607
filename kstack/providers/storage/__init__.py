"""Storage providers — the sharded, content-addressed markdown store."""

from kstack.providers.storage.content_store import ContentStore, Shard, content_hash

__all__ = ["ContentStore", "Shard", "content_hash"]
