"""Tests for TMDB enrichment."""

from __future__ import annotations

from typing import List

import httpx
import pytest

from models import CatalogItem
from scrapers import TMDBEnrichmentService
from storage import EnrichmentRateLimiter, MemoryCatalogCache


def _item(**overrides) -> CatalogItem:
    payload = {"title": "Contact", "year": 1997, "tags": ["Drama"], "description": "Astronomer."}
    payload.update(overrides)
    return CatalogItem(**payload)


def _transport(
    requests: List[httpx.Request],
    *,
    status: int = 200,
    results: bool = True,
    missing_id: bool = False,
) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if status != 200:
            return httpx.Response(status, json={"status_message": "unavailable"})
        if request.url.path.endswith("/search/movie"):
            hit = {"title": "Contact"} if missing_id else {"id": 686, "title": "Contact"}
            return httpx.Response(200, json={"results": [hit] if results else []})
        return httpx.Response(
            200,
            json={
                "id": 686,
                "overview": "Dr. Ellie Arroway finds conclusive radio proof of extraterrestrial intelligence.",
                "genres": [{"name": "Drama"}, {"name": "Science Fiction"}, {"name": "Mystery"}],
                "vote_average": 7.4,
                "adult": False,
                "poster_path": "/contact.jpg",
            },
        )

    return httpx.MockTransport(handler)


def _service(requests: List[httpx.Request], **kwargs) -> TMDBEnrichmentService:
    transport_kwargs = {key: kwargs.pop(key) for key in ("status", "results", "missing_id") if key in kwargs}
    client = httpx.AsyncClient(transport=_transport(requests, **transport_kwargs))
    return TMDBEnrichmentService(api_key=kwargs.pop("api_key", "test-key"), client=client, **kwargs)


@pytest.mark.asyncio
async def test_enrich_merges_details_without_mutating_input() -> None:
    requests: List[httpx.Request] = []
    service = _service(requests)
    item = _item()

    enriched = await service.enrich(item)

    assert enriched is not None
    assert enriched.description.startswith("Dr. Ellie Arroway")
    assert enriched.tags == ["Drama", "Science Fiction", "Mystery"]
    assert enriched.rating == 7.4
    assert enriched.poster_url == "https://image.tmdb.org/t/p/w500/contact.jpg"
    assert item.description == "Astronomer."
    assert requests[0].url.params["query"] == "Contact"
    assert requests[0].url.params["year"] == "1997"
    assert len(requests) == 2


@pytest.mark.asyncio
async def test_enrich_uses_cache_before_calling_out() -> None:
    requests: List[httpx.Request] = []
    cache = MemoryCatalogCache()
    service = _service(requests, cache=cache)

    first = await service.enrich(_item())
    second = await service.enrich(_item())

    assert first == second
    assert len(requests) == 2
    assert cache.get("contact_1997") == first


@pytest.mark.asyncio
async def test_enrich_returns_none_when_budget_exhausted() -> None:
    requests: List[httpx.Request] = []
    service = _service(requests, rate_limiter=EnrichmentRateLimiter(max_calls=1))

    assert await service.enrich(_item()) is not None
    assert await service.enrich(_item(title="Gravity", year=2013)) is None
    assert len(requests) == 2

    service.reset()
    assert await service.enrich(_item(title="Gravity", year=2013)) is not None


@pytest.mark.asyncio
async def test_enrich_without_api_key_is_unavailable() -> None:
    requests: List[httpx.Request] = []
    service = _service(requests, api_key=None)

    assert await service.enrich(_item()) is None
    assert requests == []


@pytest.mark.asyncio
async def test_enrich_http_error_and_no_results_return_none() -> None:
    failing = _service([], status=503)
    empty = _service([], results=False)

    assert await failing.enrich(_item()) is None
    assert await empty.enrich(_item()) is None


@pytest.mark.asyncio
async def test_search_hit_without_id_skips_details_request() -> None:
    requests: List[httpx.Request] = []
    service = _service(requests, missing_id=True)

    assert await service.enrich(_item()) is None
    assert len(requests) == 1
    assert requests[0].url.path.endswith("/search/movie")
    assert not any("None" in request.url.path for request in requests)
