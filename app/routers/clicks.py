"""Search result click, add-to-cart and conversion tracking."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.dependencies import get_analytics_store, get_query_stats
from app.core.cache import QueryStatsCache
from app.core.schemas import AddToCartPayload, ClickTrackingPayload, ConversionPayload
from app.services.search_analytics import SearchAnalyticsStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search/clicks", tags=["search-clicks"])


@router.post("")
async def track_click(
    payload: ClickTrackingPayload,
    store: SearchAnalyticsStore = Depends(get_analytics_store),
    query_stats: QueryStatsCache = Depends(get_query_stats),
):
    """Track a click on a search result."""
    try:
        await store.track_click(
            query=payload.query,
            product_id=payload.product_id,
            position=payload.position,
            result_count=payload.result_count,
            filters=payload.filters,
            category=payload.category,
            price=payload.price,
            score=payload.score,
            user_id=payload.user_id,
            session_id=payload.session_id,
            clicked_at=payload.timestamp,
        )
    except Exception as e:
        logger.error(f"❌ Click tracking error: {e}")
        raise HTTPException(status_code=500, detail="Click tracking failed")

    await query_stats.track_click(payload.query)

    return {
        "success": True,
        "message": "Click tracked successfully",
        "data": {
            "query": payload.query,
            "productId": payload.product_id,
            "position": payload.position,
        },
    }


@router.put("")
async def track_conversion(
    payload: ConversionPayload,
    store: SearchAnalyticsStore = Depends(get_analytics_store),
):
    """Track a purchase attributed to a search."""
    try:
        updated = await store.track_conversion(payload.query, payload.product_id, payload.revenue)
    except Exception as e:
        logger.error(f"❌ Conversion tracking error: {e}")
        raise HTTPException(status_code=500, detail="Conversion tracking failed")

    if not updated:
        raise HTTPException(status_code=404, detail="No click recorded for this query and product")
    return {"success": True, "message": "Conversion tracked successfully"}


@router.post("/cart")
async def track_add_to_cart(
    payload: AddToCartPayload,
    store: SearchAnalyticsStore = Depends(get_analytics_store),
):
    """Track an add-to-cart attributed to a search."""
    try:
        updated = await store.track_add_to_cart(payload.query, payload.product_id)
    except Exception as e:
        logger.error(f"❌ Add-to-cart tracking error: {e}")
        raise HTTPException(status_code=500, detail="Add-to-cart tracking failed")

    if not updated:
        raise HTTPException(status_code=404, detail="No click recorded for this query and product")
    return {"success": True, "message": "Add-to-cart tracked successfully"}


@router.get("")
async def click_analytics(
    query: Optional[str] = Query(None, max_length=500),
    days: int = Query(30, ge=1, le=365),
    limit: int = Query(20, ge=1, le=100),
    store: SearchAnalyticsStore = Depends(get_analytics_store),
    query_stats: QueryStatsCache = Depends(get_query_stats),
):
    """
    Click-through analytics.

    - without ``query``: top queries by total clicks
    - with ``query``: impressions, clicks and CTR for that query
    """
    if query:
        return {
            "success": True,
            "type": "query_ctr",
            "query": query,
            "metrics": await query_stats.get_query_ctr(query),
        }

    try:
        top = await store.top_clicked_queries(limit=limit, days=days)
    except Exception as e:
        logger.error(f"❌ CTR analytics error: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch click analytics")

    return {"success": True, "type": "top_queries", "data": top}
