"""
FastAPI routes for the Etsub storefront.

Handles:
- Public catalog: product gallery with search/filter/sort, product detail,
  categories and chat order links
- Admin: login/logout, session status, dashboard stats
- Admin: product add/edit/status/delete
- Admin: catalog backup export and clear-all
- Admin: exchange-rate status, refresh and manual override

Admin routes are plain functions: they can block on storage writes, timer
shutdown and provider calls, so FastAPI runs them in its threadpool.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from storefront.exceptions import ValidationError
from storefront.services.admin_service import BACKUP_FILENAME, AdminService, ProductDraft
from storefront.services.catalog_service import ALL, list_categories, search_products
from storefront.services.messaging import order_links
from storefront.webapp.schemas import (
    LoginRequest,
    LoginResponse,
    ManualRateRequest,
    OrderLinksResponse,
    ProductRequest,
    RateRefreshResponse,
    RateResponse,
    SessionResponse,
    StatsResponse,
    StatusUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Dependency Injection
# ============================================================================

def get_service(request: Request) -> AdminService:
    """Get the admin service built at startup."""
    return request.app.state.service


def require_admin(service: AdminService = Depends(get_service)) -> AdminService:
    """
    Dependency for admin-only routes.

    Raises:
        AuthenticationRequiredError: If the admin is not logged in.
    """
    service.require_session()
    return service


# ============================================================================
# Public catalog
# ============================================================================

@router.get("/api/products")
async def list_products(
    search: str = Query("", description="Text matched against name, description and category"),
    category: str = Query(ALL),
    status: str = Query(ALL),
    sort: str = Query("newest"),
    service: AdminService = Depends(get_service),
) -> Dict[str, Any]:
    """List catalog products for the storefront gallery."""
    try:
        products = search_products(
            service.catalog.products,
            term=search,
            category=category,
            status=status,
            sort_by=sort,
        )
    except ValueError as e:
        raise ValidationError(str(e), details={"status": status, "sort": sort})

    return {
        "products": [p.to_dict() for p in products],
        "count": len(products),
        "rate": service.fx_provider.get_rate(),
    }


@router.get("/api/products/{product_id}")
async def get_product(product_id: str, service: AdminService = Depends(get_service)) -> Dict[str, Any]:
    return service.catalog.get(product_id).to_dict()


@router.get("/api/categories")
async def get_categories(service: AdminService = Depends(get_service)) -> List[str]:
    return list_categories(service.catalog.products)


@router.get("/api/products/{product_id}/order-links", response_model=OrderLinksResponse)
async def get_order_links(product_id: str, service: AdminService = Depends(get_service)) -> Dict[str, str]:
    """Get WhatsApp and Telegram links pre-filled with the product and price."""
    product = service.catalog.get(product_id)
    return order_links(product, service.config.messaging)


# ============================================================================
# Admin session
# ============================================================================

@router.post("/api/admin/login", response_model=LoginResponse)
def login(body: LoginRequest, service: AdminService = Depends(get_service)) -> Dict[str, Any]:
    """
    Submit the admin password.

    A wrong password is a normal response with ``success: false``; lockout
    state and attempts left are reported in the body.
    """
    result = service.login(body.password)
    return result.to_dict()


@router.post("/api/admin/logout")
def logout(service: AdminService = Depends(get_service)) -> Dict[str, Any]:
    service.logout()
    return {"success": True, "state": service.guard.state.value}


@router.get("/api/admin/session", response_model=SessionResponse)
def session_status(service: AdminService = Depends(get_service)) -> Dict[str, Any]:
    """Session state; surfaces the expiry notice once after a forced logout."""
    service.check_session()
    info = service.guard.to_dict()
    info["notice"] = service.guard.pop_notice()
    return info


@router.get("/api/admin/stats", response_model=StatsResponse)
def stats(service: AdminService = Depends(require_admin)) -> Dict[str, Any]:
    info = service.stats().to_dict()
    info["rate"] = service.fx_provider.get_rate()
    return info


# ============================================================================
# Admin catalog
# ============================================================================

@router.post("/api/admin/products", status_code=201)
def create_product(
    body: ProductRequest,
    service: AdminService = Depends(require_admin),
) -> Dict[str, Any]:
    product = service.add_product(ProductDraft.from_mapping(body.model_dump()))
    return product.to_dict()


@router.put("/api/admin/products/{product_id}")
def edit_product(
    product_id: str,
    body: ProductRequest,
    service: AdminService = Depends(require_admin),
) -> Dict[str, Any]:
    product = service.update_product(product_id, ProductDraft.from_mapping(body.model_dump()))
    return product.to_dict()


@router.patch("/api/admin/products/{product_id}/status")
def change_status(
    product_id: str,
    body: StatusUpdateRequest,
    service: AdminService = Depends(require_admin),
) -> Dict[str, Any]:
    return service.set_product_status(product_id, body.status).to_dict()


@router.get("/api/admin/products/export")
def export_products(service: AdminService = Depends(require_admin)) -> JSONResponse:
    """Download the whole catalog as a JSON backup file."""
    return JSONResponse(
        content=service.export_catalog(),
        headers={"Content-Disposition": f'attachment; filename="{BACKUP_FILENAME}"'},
    )


@router.delete("/api/admin/products")
def clear_products(service: AdminService = Depends(require_admin)) -> Dict[str, Any]:
    """Delete every product and its uploaded media."""
    removed = service.clear_catalog()
    return {"success": True, "removed": removed}


@router.delete("/api/admin/products/{product_id}")
def remove_product(product_id: str, service: AdminService = Depends(require_admin)) -> Dict[str, Any]:
    product = service.delete_product(product_id)
    return {"success": True, "id": product.id}


# ============================================================================
# Admin exchange rate
# ============================================================================

@router.get("/api/admin/rate", response_model=RateResponse)
def rate_status(service: AdminService = Depends(require_admin)) -> Dict[str, Any]:
    return service.rate_state().to_dict()


@router.post("/api/admin/rate/refresh", response_model=RateRefreshResponse)
def refresh_rate(service: AdminService = Depends(require_admin)) -> Dict[str, Any]:
    """Refresh the rate from the cache or the live providers."""
    result = service.refresh_rate()
    info = service.rate_state().to_dict()
    info.update(
        success=result.success,
        fetched=result.fetched,
        skipped=result.skipped,
        error=result.error,
    )
    return info


@router.post("/api/admin/rate/refresh-async", response_model=RateResponse, status_code=202)
def refresh_rate_in_background(service: AdminService = Depends(require_admin)) -> Dict[str, Any]:
    """Start a refresh without waiting; poll /api/admin/rate until is_loading clears."""
    service.refresh_rate_async()
    return service.rate_state().to_dict()


@router.post("/api/admin/rate/manual", response_model=RateResponse)
def set_manual_rate(
    body: ManualRateRequest,
    service: AdminService = Depends(require_admin),
) -> Dict[str, Any]:
    state = service.set_manual_rate(body.rate)
    logger.info(f"Manual FX rate set via API: {state.current_rate}")
    return state.to_dict()
