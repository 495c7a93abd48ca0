"""
Stock push-back trigger for services that change stock out of process.
"""

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_stock_pusher, require_tenant, tenant_db

router = APIRouter(prefix="/api/products")


@router.post("/{product_id}/push-stock", status_code=202)
async def push_product_stock(product_id: str, tenant_id: str = Depends(require_tenant)):
    """Queue a push of the product's sellable quantity. The outcome is only logged."""
    if not await tenant_db(tenant_id).find_unique("products", "id", product_id):
        raise HTTPException(status_code=404, detail="Product not found")

    get_stock_pusher().schedule(tenant_id, product_id)
    return {"queued": True, "product_id": product_id}
