import asyncio
from typing import Any, Iterable

from async_lru import alru_cache
from cachetools import TTLCache
from loguru import logger
from pydantic import BaseModel

from basker.core.config import settings
from basker.core.constants import ADMIN_PERMISSIONS
from basker.models.content import (
    AdminRole,
    BlogPost,
    ChatMessage,
    Company,
    Group,
    HeatMapEntry,
    Link,
    Note,
    Poll,
    PortfolioItem,
    Product,
    Settings,
    Story,
    Widget,
    WorkHistory,
)
from basker.models.records import SyncResult
from basker.services.atproto.gateway import RecordGateway
from basker.services.collections import COLLECTIONS, CollectionDescriptor, get_descriptor
from basker.services.ephemeral import EphemeralContentFilter
from basker.services.session_manager import SessionManager
from basker.services.sync import CollectionSynchronizer


def _copies(items: Iterable[BaseModel]) -> list[Any]:
    return [item.model_copy(deep=True) for item in items]


class ProfileContentService:
    """
    Facade over the profile collections: ``get_x`` / ``save_x`` for the
    signed-in actor and ``get_public_x`` for anyone else's profile.

    Cached items are never handed out directly; every read returns copies.
    """

    def __init__(self, sessions: SessionManager):
        self.sessions = sessions
        # (actor_id, collection name) -> items
        self._cache: TTLCache = TTLCache(maxsize=1000, ttl=settings.COLLECTION_CACHE_TTL_SECONDS)
        # (actor_id, collection name) -> compactions started by reads
        self._compactions: dict[tuple[str, str], set[asyncio.Task]] = {}
        sessions.on_logout(self.purge_actor)

    # Generic operations

    async def _read(self, gateway: RecordGateway, descriptor: CollectionDescriptor) -> list[Any]:
        if descriptor.expiring:
            pending = self._compactions.setdefault((gateway.actor_id, descriptor.name), set())
            content_filter = EphemeralContentFilter(gateway, pending=pending)
            return await content_filter.read(descriptor)
        if descriptor.is_singleton:
            record = await gateway.get(descriptor.nsid, settings.SINGLETON_RKEY)
            return descriptor.decode_payload(record.payload) if record else []
        return descriptor.decode_records(await gateway.list(descriptor.nsid))

    async def get(self, name: str) -> list[Any]:
        descriptor = get_descriptor(name)
        gateway = self.sessions.gateway()
        cache_key = (gateway.actor_id, name)
        if not descriptor.expiring and cache_key in self._cache:
            return _copies(self._cache[cache_key])

        items = await self._read(gateway, descriptor)
        if not descriptor.expiring:
            self._cache[cache_key] = _copies(items)
        return items

    async def save(self, name: str, items: list[Any]) -> SyncResult:
        descriptor = get_descriptor(name)
        gateway = self.sessions.gateway()
        cache_key = (gateway.actor_id, name)
        self._cache.pop(cache_key, None)

        # A compaction still in flight would write back its older view over this save
        await self._settle(cache_key)
        try:
            result = await CollectionSynchronizer(gateway).sync(descriptor, items)
        finally:
            self._read_public.cache_invalidate(name, gateway.actor_id)

        if not descriptor.expiring:
            self._cache[cache_key] = _copies(result.items)
        return result

    async def get_public(self, name: str, target_actor_id: str) -> list[Any]:
        descriptor = get_descriptor(name)
        if descriptor.expiring:
            return await self._read(self.sessions.public_gateway(target_actor_id), descriptor)
        return _copies(await self._read_public(name, target_actor_id))

    @alru_cache(maxsize=500, ttl=60)
    async def _read_public(self, name: str, target_actor_id: str) -> tuple[Any, ...]:
        descriptor = get_descriptor(name)
        gateway = self.sessions.public_gateway(target_actor_id)
        logger.debug(f"Public read of {descriptor.nsid} for {target_actor_id}")
        return tuple(await self._read(gateway, descriptor))

    def purge_actor(self, actor_id: str) -> None:
        for key in [key for key in self._cache if key[0] == actor_id]:
            self._cache.pop(key, None)
        for name in COLLECTIONS:
            self._read_public.cache_invalidate(name, actor_id)
        logger.debug(f"Purged cached collections for {actor_id}")

    async def _settle(self, key: tuple[str, str]) -> None:
        pending = self._compactions.get(key)
        if pending:
            logger.debug(f"Waiting for {len(pending)} compaction(s) of {key[1]} for {key[0]}")
            await asyncio.gather(*list(pending), return_exceptions=True)

    async def drain(self) -> None:
        """Wait for background compactions started by reads."""
        tasks = [task for pending in self._compactions.values() for task in pending]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # Links

    async def get_links(self) -> list[Link]:
        return await self.get("links")

    async def save_links(self, links: list[Link]) -> SyncResult:
        return await self.save("links", links)

    async def get_public_links(self, target_actor_id: str) -> list[Link]:
        return await self.get_public("links", target_actor_id)

    # Link groups

    async def get_groups(self) -> list[Group]:
        return await self.get("groups")

    async def save_groups(self, groups: list[Group]) -> SyncResult:
        return await self.save("groups", groups)

    async def get_public_groups(self, target_actor_id: str) -> list[Group]:
        return await self.get_public("groups", target_actor_id)

    # Notes

    async def get_notes(self) -> list[Note]:
        return await self.get("notes")

    async def save_notes(self, notes: list[Note]) -> SyncResult:
        return await self.save("notes", notes)

    async def get_public_notes(self, target_actor_id: str) -> list[Note]:
        notes = await self.get_public("notes", target_actor_id)
        return [note for note in notes if note.is_public]

    # Widgets

    async def get_widgets(self) -> list[Widget]:
        return await self.get("widgets")

    async def save_widgets(self, widgets: list[Widget]) -> SyncResult:
        return await self.save("widgets", widgets)

    async def get_public_widgets(self, target_actor_id: str) -> list[Widget]:
        return await self.get_public("widgets", target_actor_id)

    # Stories (expire client-side)

    async def get_stories(self) -> list[Story]:
        return await self.get("stories")

    async def save_stories(self, stories: list[Story]) -> SyncResult:
        return await self.save("stories", stories)

    async def get_public_stories(self, target_actor_id: str) -> list[Story]:
        return await self.get_public("stories", target_actor_id)

    # Settings (one blob)

    async def get_settings(self) -> Settings | None:
        items = await self.get("settings")
        return items[0] if items else None

    async def save_settings(self, profile_settings: Settings) -> SyncResult:
        return await self.save("settings", [profile_settings])

    async def get_public_settings(self, target_actor_id: str) -> Settings | None:
        items = await self.get_public("settings", target_actor_id)
        return items[0] if items else None

    # Companies and work history

    async def get_companies(self) -> list[Company]:
        return await self.get("companies")

    async def save_companies(self, companies: list[Company]) -> SyncResult:
        return await self.save("companies", companies)

    async def get_public_companies(self, target_actor_id: str) -> list[Company]:
        return await self.get_public("companies", target_actor_id)

    async def get_work_history(self) -> list[WorkHistory]:
        return await self.get("work_history")

    async def save_work_history(self, entries: list[WorkHistory]) -> SyncResult:
        return await self.save("work_history", entries)

    async def get_public_work_history(self, target_actor_id: str) -> list[WorkHistory]:
        return await self.get_public("work_history", target_actor_id)

    # Admin roles

    async def get_admin_roles(self) -> list[AdminRole]:
        return await self.get("admin_roles")

    async def save_admin_roles(self, roles: list[AdminRole]) -> SyncResult:
        return await self.save("admin_roles", roles)

    async def get_public_admin_roles(self, target_actor_id: str) -> list[AdminRole]:
        return await self.get_public("admin_roles", target_actor_id)

    async def get_admin_permissions(self, actor_id: str | None = None) -> list[str]:
        """Permissions of ``actor_id`` (default: current actor) from config or the admin-role records."""
        actor_id = actor_id or self.sessions.require_actor()
        if actor_id in settings.ADMIN_DIDS:
            return list(ADMIN_PERMISSIONS)
        for role in await self.get_admin_roles():
            if role.did == actor_id and role.is_active:
                return [p for p in role.permissions if p in ADMIN_PERMISSIONS]
        return []

    # Widget-backed collections

    async def get_polls(self) -> list[Poll]:
        return await self.get("polls")

    async def save_polls(self, polls: list[Poll]) -> SyncResult:
        return await self.save("polls", polls)

    async def get_public_polls(self, target_actor_id: str) -> list[Poll]:
        return await self.get_public("polls", target_actor_id)

    async def get_blog_posts(self) -> list[BlogPost]:
        return await self.get("blog")

    async def save_blog_posts(self, posts: list[BlogPost]) -> SyncResult:
        return await self.save("blog", posts)

    async def get_public_blog_posts(self, target_actor_id: str) -> list[BlogPost]:
        posts = await self.get_public("blog", target_actor_id)
        return [post for post in posts if post.is_published]

    async def get_portfolio(self) -> list[PortfolioItem]:
        return await self.get("portfolio")

    async def save_portfolio(self, items: list[PortfolioItem]) -> SyncResult:
        return await self.save("portfolio", items)

    async def get_public_portfolio(self, target_actor_id: str) -> list[PortfolioItem]:
        return await self.get_public("portfolio", target_actor_id)

    async def get_products(self) -> list[Product]:
        return await self.get("products")

    async def save_products(self, products: list[Product]) -> SyncResult:
        return await self.save("products", products)

    async def get_public_products(self, target_actor_id: str) -> list[Product]:
        return await self.get_public("products", target_actor_id)

    async def get_heatmap(self) -> list[HeatMapEntry]:
        return await self.get("heatmap")

    async def save_heatmap(self, entries: list[HeatMapEntry]) -> SyncResult:
        return await self.save("heatmap", entries)

    async def get_public_heatmap(self, target_actor_id: str) -> list[HeatMapEntry]:
        return await self.get_public("heatmap", target_actor_id)

    async def get_chat_messages(self) -> list[ChatMessage]:
        return await self.get("chat")

    async def save_chat_messages(self, messages: list[ChatMessage]) -> SyncResult:
        return await self.save("chat", messages)

    async def get_public_chat_messages(self, target_actor_id: str) -> list[ChatMessage]:
        return await self.get_public("chat", target_actor_id)
