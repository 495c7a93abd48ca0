"""
Pydantic models for database entities.
Store credentials are kept encrypted; see warehouse_sync.auth.crypto.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional
from pydantic import AfterValidator, BaseModel, Field
import uuid


class SyncStatus(str, Enum):
    """Status of a store's last sync."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class LogStatus(str, Enum):
    """Status of a sync log entry."""
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class TriggerType(str, Enum):
    """What triggered the sync."""
    SCHEDULER = "scheduler"
    MANUAL = "manual"
    WEBHOOK = "webhook"


class OutOfStockBehavior(str, Enum):
    """What the storefront does with a product that has no sellable stock."""
    HIDE = "hide"
    SHOW_SOLD_OUT = "show_sold_out"
    ALLOW_BACKORDERS = "allow_backorders"
    ALLOW_BACKORDERS_NOTIFY = "allow_backorders_notify"


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current time, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes (e.g. a bare "2024-06-10" from the API) are taken as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class TenantSettings(BaseModel):
    """Per-tenant sync policy."""
    status_mapping: Dict[str, str] = Field(default_factory=dict)
    default_new_order_status: Optional[str] = None
    low_stock_threshold: Optional[int] = None
    push_stock_enabled: bool = False
    out_of_stock_behavior: OutOfStockBehavior = OutOfStockBehavior.SHOW_SOLD_OUT


class Tenant(BaseModel):
    """An isolated customer account."""
    id: str = Field(default_factory=generate_uuid)
    name: str
    settings: TenantSettings = Field(default_factory=TenantSettings)
    created_at: datetime = Field(default_factory=utcnow)


class Store(BaseModel):
    """A tenant's connection to one WooCommerce shop."""
    id: str = Field(default_factory=generate_uuid)
    tenant_id: str
    name: str
    url: str  # e.g., "https://shop.example.com"
    consumer_key: str  # encrypted
    consumer_secret: str  # encrypted
    webhook_secret: Optional[str] = None  # encrypted
    is_active: bool = True
    auto_sync: bool = True
    sync_interval_min: int = 15
    sync_orders: bool = True
    sync_products: bool = True
    sync_days_back: int = 30
    sync_since_date: Optional[UtcDatetime] = None
    order_status_filter: List[str] = Field(default_factory=list)
    last_sync_at: Optional[UtcDatetime] = None
    last_sync_status: SyncStatus = SyncStatus.IDLE
    needs_reconnect: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

class StoreCreate(BaseModel):
    """Input for connecting a new store."""
    name: str
    url: str
    consumer_key: str
    consumer_secret: str
    webhook_secret: Optional[str] = None
    auto_sync: bool = True
    sync_interval_min: int = Field(default=15, ge=1)
    sync_orders: bool = True
    sync_products: bool = True
    sync_days_back: int = Field(default=30, ge=0)
    sync_since_date: Optional[UtcDatetime] = None
    order_status_filter: List[str] = Field(default_factory=list)

class StoreUpdate(BaseModel):
    """Input for updating a store. Unset fields are left unchanged."""
    name: Optional[str] = None
    url: Optional[str] = None
    consumer_key: Optional[str] = None
    consumer_secret: Optional[str] = None
    webhook_secret: Optional[str] = None
    is_active: Optional[bool] = None
    auto_sync: Optional[bool] = None
    sync_interval_min: Optional[int] = Field(default=None, ge=1)
    sync_orders: Optional[bool] = None
    sync_products: Optional[bool] = None
    sync_days_back: Optional[int] = Field(default=None, ge=0)
    sync_since_date: Optional[UtcDatetime] = None
    order_status_filter: Optional[List[str]] = None

class ProductSyncSettings(BaseModel):
    """Per-product overrides of the tenant sync policy."""
    push_enabled: Optional[bool] = None
    out_of_stock_behavior: Optional[OutOfStockBehavior] = None


class Product(BaseModel):
    """A catalog item mirrored from a store. Natural key: (external_id, store_id)."""
    id: str = Field(default_factory=generate_uuid)
    tenant_id: str
    store_id: str
    external_id: int
    external_parent_id: Optional[int] = None
    product_type: str = "simple"
    sku: Optional[str] = None
    name: str
    description: Optional[str] = None
    price: Decimal = Decimal("0")
    currency: str = "USD"
    stock_qty: int = 0
    reserved_qty: int = 0
    low_stock_threshold: int = 5
    weight: Optional[float] = None
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    size_category: Optional[str] = None
    image_url: Optional[str] = None
    variant_attributes: Dict[str, str] = Field(default_factory=dict)
    sync_settings: Optional[ProductSyncSettings] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def sellable_qty(self) -> int:
        return self.stock_qty - self.reserved_qty


class Order(BaseModel):
    """An order mirrored from a store. Natural key: (external_id, store_id)."""
    id: str = Field(default_factory=generate_uuid)
    tenant_id: str
    store_id: str
    external_id: int
    order_number: str
    external_status: str
    status: str  # internal workflow status, set once on creation
    customer_name: str = ""
    customer_email: Optional[str] = None
    shipping_address: Dict[str, Any] = Field(default_factory=dict)
    billing_address: Dict[str, Any] = Field(default_factory=dict)
    total: Decimal = Decimal("0")
    currency: Optional[str] = None
    external_created_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class OrderItem(BaseModel):
    """A line item of an order. Unique per (order_id, external_product_id)."""
    id: str = Field(default_factory=generate_uuid)
    order_id: str
    external_product_id: int
    product_id: Optional[str] = None
    sku: Optional[str] = None
    name: str
    quantity: int
    price: Decimal = Decimal("0")


class SyncLog(BaseModel):
    """A log entry for a sync execution."""
    id: str = Field(default_factory=generate_uuid)
    tenant_id: str
    store_id: str
    store_name: str
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    status: LogStatus = LogStatus.RUNNING
    triggered_by: TriggerType = TriggerType.MANUAL

    # Statistics
    orders_processed: int = 0
    orders_created: int = 0
    orders_updated: int = 0
    products_added: int = 0
    products_updated: int = 0
    products_skipped: int = 0
    items_failed: int = 0

    # Error information
    error_message: Optional[str] = None
    error_details: Optional[str] = None
