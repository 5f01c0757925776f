# api/main.py
from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.middleware.cors import CORSMiddleware
import os
from dotenv import load_dotenv
from .auth import get_api_key
from .rate_limit import register_rate_limit, limiter, VISITOR_LIMIT
from storefront.service import get_data_service
from storefront.owner import (
    BusinessInput,
    BusinessNotFound,
    InvalidItem,
    ItemInput,
    ItemNotFound,
    create_business,
    delete_item,
    save_item,
    update_business,
)
import logging

load_dotenv()
API_PORT = int(os.getenv("API_PORT", "8000"))

app = FastAPI(title="Storefront API", version="1.0")

register_rate_limit(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

logger = logging.getLogger("api")
logger.setLevel(logging.INFO)

SITE_UNAVAILABLE = "Site unavailable"


def website_to_resp(payload):
    """
    Serialize a WebsitePayload for the storefront page.

    Returns:
        dict: {"business": ..., "items": [...], "canonical_slug": str | None}
            with datetimes rendered as ISO strings
    """
    body = payload.model_dump(mode="json")
    body["canonical_slug"] = payload.canonical_slug
    return body


@app.exception_handler(BusinessNotFound)
async def business_not_found_handler(request: Request, exc: BusinessNotFound):
    return JSONResponse(status_code=404, content={"detail": "Business not found"})


@app.exception_handler(ItemNotFound)
async def item_not_found_handler(request: Request, exc: ItemNotFound):
    return JSONResponse(status_code=404, content={"detail": "Item not found"})


@app.exception_handler(InvalidItem)
async def invalid_item_handler(request: Request, exc: InvalidItem):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.get("/websites/{slug}")
@limiter.limit(VISITOR_LIMIT)
async def get_website(request: Request, slug: str):
    """
    Public storefront data for a slug.

    Args:
        request (Request): FastAPI request object (required for rate limiting)
        slug (str): Current or previous slug of a business

    Returns:
        dict: Business and items (see website_to_resp)

    Redirects:
        307 to /websites/{canonical_slug} when the slug is an old alias

    Raises:
        HTTPException: 404 "Site unavailable" when the business does not
            exist, the read budget is exhausted with nothing cached, or the
            backend failed. The three cases are deliberately
            indistinguishable for visitors.
    """
    payload = await get_data_service().resolve_website_by_slug(slug)
    if payload is None:
        raise HTTPException(status_code=404, detail=SITE_UNAVAILABLE)
    if payload.canonical_slug and payload.canonical_slug != slug:
        return RedirectResponse(f"/websites/{payload.canonical_slug}", status_code=307)
    return website_to_resp(payload)


@app.get("/websites/{slug}/products/{item_id}")
@limiter.limit(VISITOR_LIMIT)
async def get_website_item(request: Request, slug: str, item_id: str):
    """Product detail page data: the business plus one of its items."""
    payload, item = await get_data_service().get_item(slug, item_id)
    if payload is None:
        raise HTTPException(status_code=404, detail=SITE_UNAVAILABLE)
    if item is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return {
        "business": payload.business.model_dump(mode="json"),
        "item": item.model_dump(mode="json"),
        "canonical_slug": payload.canonical_slug,
    }


@app.get("/safety/stats", dependencies=[Depends(get_api_key)])
async def safety_stats():
    """
    Read-budget dashboard numbers.

    Returns:
        dict: daily_reads, max_daily_reads, cache_size, max_cache_size,
            usage_ratio, level ("ok" / "caution" / "warning") and cost
            estimates at the daily limit

    Note:
        Has no side effects on the governor or the cache.
    """
    return get_data_service().get_governor_stats().model_dump()


@app.post("/admin/cache/clear", dependencies=[Depends(get_api_key)])
async def clear_cache():
    get_data_service().clear_cache()
    return {"cleared": True}


@app.get("/companies", dependencies=[Depends(get_api_key)])
async def list_companies():
    return {"companies": get_data_service().get_all_companies()}


@app.get("/owners/{owner_id}/website", dependencies=[Depends(get_api_key)])
async def owner_website(owner_id: str):
    """Owner dashboard preview, looked up by owner id instead of slug."""
    payload = await get_data_service().get_website_data(owner_id)
    if payload is None:
        raise HTTPException(status_code=404, detail=SITE_UNAVAILABLE)
    return website_to_resp(payload)


@app.post(
    "/owners/{owner_id}/business",
    status_code=201,
    dependencies=[Depends(get_api_key)],
)
async def create_owner_business(owner_id: str, data: BusinessInput):
    service = get_data_service()
    business = await create_business(service.store, service, owner_id, data)
    return business.model_dump()


@app.put("/owners/{owner_id}/business", dependencies=[Depends(get_api_key)])
async def update_owner_business(owner_id: str, data: BusinessInput):
    """
    Edit business details.

    Renaming changes the slug; the previous slug keeps redirecting to the
    new one. Returns the stored business.
    """
    service = get_data_service()
    business = await update_business(service.store, service, owner_id, data)
    return business.model_dump()


@app.post(
    "/owners/{owner_id}/products",
    status_code=201,
    dependencies=[Depends(get_api_key)],
)
async def create_owner_item(owner_id: str, data: ItemInput):
    service = get_data_service()
    item = await save_item(service.store, service, owner_id, data)
    return item.model_dump(mode="json")


@app.put("/owners/{owner_id}/products/{item_id}", dependencies=[Depends(get_api_key)])
async def update_owner_item(owner_id: str, item_id: str, data: ItemInput):
    service = get_data_service()
    item = await save_item(service.store, service, owner_id, data, item_id=item_id)
    return item.model_dump(mode="json")


@app.delete(
    "/owners/{owner_id}/products/{item_id}",
    status_code=204,
    dependencies=[Depends(get_api_key)],
)
async def delete_owner_item(owner_id: str, item_id: str):
    service = get_data_service()
    await delete_item(service.store, service, owner_id, item_id)


# Run uvicorn externally or here
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=API_PORT, reload=True)
