"""
Supabase-backed ChunkStore.

Chunks live in PostgreSQL (one row per category/chunk_index with a jsonb
product array), legacy data in a one-row-per-category table. The atomic
save batch runs as a Postgres function (see sql/category_chunks.sql) so the
chunk upserts, the pruning deletes and the legacy delete share a
transaction. Subscriptions use Supabase Realtime channels.
"""

import uuid
from typing import Iterable, Optional

from rich.console import Console
from supabase import AsyncClient, acreate_client

from config.settings import StorageConfig

from .chunk_store import ChunkStore, OnChange, StorageError, Unsubscribe

console = Console()


def build_save_params(
    category_key: str,
    chunks: dict[int, list[dict]],
    delete_indices: Iterable[int] = (),
    delete_legacy: bool = False,
) -> dict:
    """
    Build the RPC arguments for one atomic save.

    Args:
        category_key: Category being saved
        chunks: chunk_index -> product records
        delete_indices: Stale chunk indices to remove
        delete_legacy: Whether to remove the legacy row

    Returns:
        Dict matching the save_category_chunks function signature
    """
    return {
        "p_category": category_key,
        "p_chunks": [
            {"chunk_index": int(index), "products": products}
            for index, products in sorted(chunks.items(), key=lambda c: int(c[0]))
        ],
        "p_delete_indices": sorted(int(i) for i in delete_indices),
        "p_delete_legacy": bool(delete_legacy),
    }


class SupabaseChunkStore(ChunkStore):
    """
    Stores category chunks in Supabase.

    - Chunks -> `category_chunks` table
    - Legacy lists -> `categories` table
    - Saves -> `save_category_chunks` RPC (single transaction)
    """

    def __init__(self, client: AsyncClient, storage_config: Optional[StorageConfig] = None):
        self.client = client
        self.config = storage_config or StorageConfig()

    @classmethod
    async def connect(
        cls, storage_config: Optional[StorageConfig] = None
    ) -> "SupabaseChunkStore":
        """
        Create a store from SUPABASE_URL / SUPABASE_KEY (or explicit config).

        Raises:
            ValueError: if credentials are missing
        """
        storage_config = storage_config or StorageConfig()
        if not storage_config.supabase_url or not storage_config.supabase_key:
            raise ValueError(
                "Supabase credentials required. Set SUPABASE_URL and SUPABASE_KEY "
                "environment variables or pass them in StorageConfig."
            )

        client = await acreate_client(storage_config.supabase_url, storage_config.supabase_key)
        console.print("[dim]✓ Connected to Supabase[/dim]")
        return cls(client, storage_config)

    async def list_chunks(self, category_key: str) -> list[tuple[int, list[dict]]]:
        try:
            result = await (
                self.client.table(self.config.chunks_table)
                .select("chunk_index, products")
                .eq("category", category_key)
                .execute()
            )
        except Exception as e:
            raise StorageError(f"Could not list chunks for '{category_key}': {e}") from e

        return [
            (int(row["chunk_index"]), row.get("products") or [])
            for row in result.data or []
        ]

    async def write_chunks(
        self,
        category_key: str,
        chunks: dict[int, list[dict]],
        delete_indices: Iterable[int] = (),
        delete_legacy: bool = False,
    ) -> None:
        params = build_save_params(category_key, chunks, delete_indices, delete_legacy)
        try:
            await self.client.rpc(self.config.save_rpc, params).execute()
        except Exception as e:
            raise StorageError(f"Could not write chunks for '{category_key}': {e}") from e

    async def read_legacy(self, category_key: str) -> Optional[list[dict]]:
        try:
            result = await (
                self.client.table(self.config.legacy_table)
                .select("products")
                .eq("category", category_key)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise StorageError(f"Could not read legacy data for '{category_key}': {e}") from e

        if not result.data:
            return None
        return result.data[0].get("products") or []

    async def subscribe_chunks(self, category_key: str, on_change: OnChange) -> Unsubscribe:
        return await self._subscribe(self.config.chunks_table, category_key, on_change)

    async def subscribe_legacy(self, category_key: str, on_change: OnChange) -> Unsubscribe:
        return await self._subscribe(self.config.legacy_table, category_key, on_change)

    async def _subscribe(self, table: str, category_key: str, on_change: OnChange) -> Unsubscribe:
        """Open a Realtime channel on one table filtered to one category."""
        channel = self.client.channel(f"{table}:{category_key}:{uuid.uuid4().hex[:8]}")

        # Realtime does not apply filters to DELETE events, but every prune
        # or legacy delete is committed together with chunk upserts, which do
        # match the filter.
        channel.on_postgres_changes(
            "*",
            schema="public",
            table=table,
            filter=f"category=eq.{category_key}",
            callback=lambda payload: on_change(),
        )
        await channel.subscribe()

        async def unsubscribe() -> None:
            await self.client.remove_channel(channel)

        return unsubscribe
