"""FastAPI app serving per-item lookups through keyed selectors."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from keyed_selectors.cache import KeyedInstanceCache
from keyed_selectors.memo import ComposedSelector, create_selector, field_selector

_MISSING = object()


class StateRequest(BaseModel):
    """Replacement application state; extra top-level fields are kept."""

    model_config = ConfigDict(extra="allow")

    items: dict[str, Any] = Field(default_factory=dict)


class StateResponse(BaseModel):
    """Acknowledgement of a state replacement."""

    item_count: int


class ItemResponse(BaseModel):
    """One item resolved through its keyed selector."""

    item_id: str
    value: Any
    cache_hit: bool
    compute_count: int
    build_count: int


class CacheResponse(BaseModel):
    """Introspection payload for the item selector cache."""

    size: int
    build_count: int
    keys: list[str]


def _item_selector(item_id: str) -> ComposedSelector[Any]:
    """Build the memoized selector for one item id."""

    def project(items: dict[str, Any] | None) -> Any:
        if not items or item_id not in items:
            return _MISSING
        return items[item_id]

    return create_selector(field_selector("items"), projector=project)


def create_app(state: dict[str, Any] | None = None) -> FastAPI:
    """Create and configure the FastAPI app."""
    app = FastAPI(title="Keyed Selectors API", version="0.1.0")

    item_selectors: KeyedInstanceCache[str, ComposedSelector[Any]] = KeyedInstanceCache(
        _item_selector, name="items"
    )
    app.state.store = dict(state or {"items": {}})
    app.state.item_selectors = item_selectors

    @app.put("/state", response_model=StateResponse)
    def put_state(payload: StateRequest) -> StateResponse:
        """Replace the application state."""
        app.state.store = payload.model_dump()
        return StateResponse(item_count=len(payload.items))

    @app.get("/items/{item_id}", response_model=ItemResponse)
    def get_item(item_id: str) -> ItemResponse:
        """Resolve one item through its cached selector."""
        # Unknown ids must not reach the cache; its entries are never evicted.
        if item_id not in (app.state.store.get("items") or {}):
            raise HTTPException(status_code=404, detail=f"item not found: {item_id}")
        selector, cache_hit = item_selectors.lookup(item_id)
        value = selector(app.state.store)
        if value is _MISSING:
            raise HTTPException(status_code=404, detail=f"item not found: {item_id}")
        return ItemResponse(
            item_id=item_id,
            value=value,
            cache_hit=cache_hit,
            compute_count=selector.projector_count,
            build_count=item_selectors.build_count,
        )

    @app.get("/cache", response_model=CacheResponse)
    def get_cache() -> CacheResponse:
        """Report keyed selector cache contents."""
        return CacheResponse(
            size=len(item_selectors),
            build_count=item_selectors.build_count,
            keys=item_selectors.keys(),
        )

    return app
