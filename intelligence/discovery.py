"""
Discovery Loop
分页发现：链接队列 -> 缓存 -> 目录源 -> 归一化 -> 相关链接入队。
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Dict, Iterable, List, Optional, Set, Tuple

from config import DiscoverySettings
from intelligence.agents.normalizer import ItemNormalizer
from intelligence.events import ITEM_FOUND, ProgressCallback, emit_event
from intelligence.state.workflow_state import WorkflowState
from models import CatalogItem, CatalogLink, ProcessedItem, Provenance
from scrapers.base import BaseCatalogSource
from storage.cache import BaseCatalogCache

logger = logging.getLogger(__name__)


class LinkQueue:
    """FIFO of pending links; a URL is marked seen on enqueue so it is never queued twice."""

    def __init__(
        self,
        links: Optional[Iterable[CatalogLink]] = None,
        seen_urls: Optional[Iterable[str]] = None,
        *,
        max_size: int = 100,
    ) -> None:
        self.max_size = max(0, int(max_size))
        self._links: Deque[CatalogLink] = deque(links or [])
        self._seen: Set[str] = set(seen_urls or ())
        self._seen.update(link.url for link in self._links)
        self.dropped = 0

    def __len__(self) -> int:
        return len(self._links)

    def is_seen(self, url: str) -> bool:
        return url in self._seen

    def mark_seen(self, url: str) -> None:
        self._seen.add(url)

    def enqueue(self, link: CatalogLink) -> bool:
        url = str(link.url or "").strip()
        if not url or url in self._seen:
            return False
        if len(self._links) >= self.max_size:
            self.dropped += 1
            return False
        self._links.append(link)
        self._seen.add(url)
        return True

    def enqueue_many(self, links: Iterable[CatalogLink]) -> int:
        return sum(1 for link in links if self.enqueue(link))

    def pop_batch(self, count: int) -> List[CatalogLink]:
        batch: List[CatalogLink] = []
        while self._links and len(batch) < max(0, count):
            batch.append(self._links.popleft())
        return batch

    def clear(self) -> int:
        pending = len(self._links)
        self._links.clear()
        return pending

    @property
    def links(self) -> List[CatalogLink]:
        return list(self._links)

    @property
    def seen_urls(self) -> Set[str]:
        return set(self._seen)


@dataclass
class DiscoveryResult:
    new_items: List[ProcessedItem] = field(default_factory=list)
    queue: List[CatalogLink] = field(default_factory=list)
    seen_urls: Set[str] = field(default_factory=set)
    batch: List[CatalogItem] = field(default_factory=list)
    depth: int = 0
    truncated: bool = False
    cache_hits: int = 0
    fetched: int = 0
    failed: int = 0

    @property
    def worked(self) -> bool:
        return self.cache_hits > 0 or self.fetched > 0 or self.failed > 0


def child_provenance(parent: Provenance) -> Provenance:
    """Links found on an initial page are related; anything deeper is recursive."""
    return Provenance.RELATED if Provenance(parent) == Provenance.INITIAL else Provenance.RECURSIVE


def links_per_round(batch_size: int, max_links_per_round: int) -> int:
    return max(1, min(2 * max(1, batch_size), max_links_per_round))


async def _fetch_one(
    link: CatalogLink,
    *,
    source: BaseCatalogSource,
    normalizer: ItemNormalizer,
    semaphore: asyncio.Semaphore,
    delay_range: Tuple[float, float],
) -> Tuple[CatalogItem, List[CatalogLink]]:
    async with semaphore:
        low, high = delay_range
        if high > 0:
            await asyncio.sleep(random.uniform(low, high))
        detail = await source.fetch_details(link)
    item = normalizer.normalize(detail)
    return item, source.extract_related_links(detail)


async def discover(
    state: WorkflowState,
    *,
    source: BaseCatalogSource,
    cache: BaseCatalogCache,
    settings: DiscoverySettings,
    normalizer: Optional[ItemNormalizer] = None,
    seed_url: Optional[str] = None,
    progress_callback: Optional[ProgressCallback] = None,
    run_id: Optional[str] = None,
) -> DiscoveryResult:
    """Run one discovery round and return the window [offset, offset + batch_size)."""
    normalizer = normalizer or ItemNormalizer()
    processed: List[ProcessedItem] = list(state.get("processed_items") or [])
    offset = int(state.get("batch_offset", 0) or 0)
    batch_size = int(state.get("batch_size", settings.batch_size) or settings.batch_size)
    depth = int(state.get("discovery_depth", 0) or 0)
    max_depth = int(state.get("max_discovery_depth", settings.max_discovery_depth) or 0)
    queue = LinkQueue(
        state.get("link_queue") or [],
        state.get("seen_urls") or (),
        max_size=settings.max_queue_size,
    )

    def _result(new_items: List[ProcessedItem], **kwargs) -> DiscoveryResult:
        window = [entry.item for entry in (processed + new_items)[offset:offset + batch_size]]
        return DiscoveryResult(
            new_items=new_items,
            queue=queue.links,
            seen_urls=queue.seen_urls,
            batch=window,
            **kwargs,
        )

    if len(processed) >= offset + batch_size:
        logger.debug("Window already satisfied by discovered items, skipping fetch")
        return _result([], depth=depth)

    if depth >= max_depth:
        logger.warning(f"Discovery depth limit reached ({depth}/{max_depth})")
        return _result([], depth=depth, truncated=True)

    remaining_total = settings.max_total_items - len(processed)
    if remaining_total <= 0:
        dropped = queue.clear()
        logger.warning(
            f"Discovery item cap reached ({settings.max_total_items}), dropping {dropped} queued links"
        )
        return _result([], depth=depth, truncated=True)

    loop = asyncio.get_running_loop()
    deadline = loop.time() + settings.max_execution_seconds
    listed_initial = False
    truncated = False

    if not processed and not len(queue) and depth == 0:
        listed_initial = True
        seed = seed_url or settings.seed_url
        try:
            initial_links = await asyncio.wait_for(
                source.list_initial_links(seed),
                timeout=max(0.0, deadline - loop.time()),
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Initial link listing for {seed} exceeded the time budget ({settings.max_execution_seconds}s)"
            )
            initial_links = []
            truncated = True
        except Exception as e:
            logger.warning(f"Initial link listing failed for {seed}: {e}")
            initial_links = []
        added = queue.enqueue_many(
            link.model_copy(update={"provenance": Provenance.INITIAL}) for link in initial_links
        )
        logger.info(f"Queued {added} initial links from {seed}")

    if len(queue) >= queue.max_size:
        logger.warning(f"Link queue at capacity ({queue.max_size}), new related links will be dropped")

    links = queue.pop_batch(min(links_per_round(batch_size, settings.max_links_per_round), remaining_total))
    if not links:
        return _result(
            [],
            depth=depth + 1 if listed_initial else depth,
            truncated=truncated or bool(queue.dropped),
        )

    hits: Dict[str, CatalogItem] = await asyncio.to_thread(cache.get_many, [link.url for link in links])
    misses = [link for link in links if link.url not in hits]
    logger.info(f"Discovery round {depth + 1}: {len(hits)} cache hits, {len(misses)} to fetch")

    fetched: Dict[str, Tuple[CatalogItem, List[CatalogLink]]] = {}
    failed = 0
    if misses:
        semaphore = asyncio.Semaphore(max(1, settings.fetch_concurrency))
        tasks = {
            asyncio.create_task(
                _fetch_one(
                    link,
                    source=source,
                    normalizer=normalizer,
                    semaphore=semaphore,
                    delay_range=(settings.fetch_delay_min, settings.fetch_delay_max),
                )
            ): link
            for link in misses
        }
        done, pending = await asyncio.wait(tasks, timeout=max(0.0, deadline - loop.time()))
        if pending:
            truncated = True
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(
                f"Discovery time budget ({settings.max_execution_seconds}s) exceeded, "
                f"abandoned {len(pending)} links"
            )
        for task in done:
            link = tasks[task]
            error = task.exception()
            if error is not None:
                failed += 1
                logger.warning(f"Dropping link {link.url}: {error}")
                continue
            fetched[link.url] = task.result()

    if fetched:
        await asyncio.to_thread(
            cache.set_many,
            [(url, item) for url, (item, _) in fetched.items()],
        )

    known_keys = {entry.item.item_key for entry in processed}
    new_items: List[ProcessedItem] = []
    for link in links:
        if link.url in hits:
            item = hits[link.url]
            related: List[CatalogLink] = []
        elif link.url in fetched:
            item, related = fetched[link.url]
        else:
            continue

        queue.mark_seen(link.url)
        if item.item_key in known_keys:
            logger.debug(f"Skipping duplicate item {item.item_key} from {link.url}")
        else:
            known_keys.add(item.item_key)
            entry = ProcessedItem(item=item, source_url=link.url, provenance=link.provenance)
            new_items.append(entry)
            await emit_event(
                progress_callback,
                event=ITEM_FOUND,
                run_id=run_id,
                title=item.title,
                year=item.year,
                url=link.url,
                provenance=Provenance(link.provenance).value,
            )

        provenance = child_provenance(link.provenance)
        queue.enqueue_many(
            child.model_copy(update={"provenance": provenance, "added_at": datetime.now()})
            for child in related
        )

    if queue.dropped:
        logger.warning(f"Queue ceiling dropped {queue.dropped} related links")

    return _result(
        new_items,
        depth=depth + 1,
        truncated=truncated or bool(queue.dropped),
        cache_hits=len(hits),
        fetched=len(fetched),
        failed=failed,
    )
