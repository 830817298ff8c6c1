"""
Pydantic models for request bodies and responses of the web API.

Price inputs are accepted as numbers or numeric strings; anything that does
not parse is coerced to 0 by the pricing engine rather than rejected here.
"""

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

Amount = Union[float, str, None]


class LoginRequest(BaseModel):
    """Admin login form."""

    password: str = Field("", description="Admin password")

    model_config = ConfigDict(extra="ignore")


class ProductRequest(BaseModel):
    """
    Add/edit product form.

    Only the name is required. Media limits are checked by the catalog store.
    """

    name: str = Field(..., description="Product name (required, non-blank)")
    source_cost_usd: Amount = Field(0, description="Supplier cost in USD")
    agent_fee_local: Amount = Field(0, description="Agent fee in birr")
    margin_local: Amount = Field(0, description="Shop margin in birr")
    status: str = Field("in_stock", description="in_stock, on_order or sold")
    category: str = ""
    size: str = ""
    color: str = ""
    description: str = ""
    images: List[str] = Field(default_factory=list)
    videos: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @field_validator("images", "videos", mode="before")
    @classmethod
    def ensure_list(cls, v: Any) -> Any:
        """Accept a single reference or null."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v else []
        return v

    @field_validator("category", "size", "color", "status", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class StatusUpdateRequest(BaseModel):
    """Quick status change from the product table."""

    status: str


class ManualRateRequest(BaseModel):
    """Manual USD to ETB rate entry."""

    rate: Union[float, str] = Field(..., description="USD to ETB exchange rate")


class LoginResponse(BaseModel):
    """Result of a login attempt."""

    success: bool
    state: str
    message: str
    remaining_seconds: int = 0
    attempts_left: Optional[int] = None


class SessionResponse(BaseModel):
    """Current admin session status."""

    state: str
    authenticated: bool
    session_expires_at: Optional[str] = None
    failed_attempt_count: int = 0
    locked_until: Optional[str] = None
    lockout_remaining_seconds: int = 0
    notice: Optional[str] = None


class RateResponse(BaseModel):
    """Exchange-rate state."""

    rate: float
    source: str
    last_updated_at: Optional[str] = None
    is_loading: bool = False


class RateRefreshResponse(RateResponse):
    """Outcome of a manual refresh."""

    success: bool
    fetched: bool = False
    skipped: bool = False
    error: Optional[str] = None


class StatsResponse(BaseModel):
    """Dashboard summary."""

    total: int = Field(0, ge=0)
    in_stock: int = Field(0, ge=0)
    on_order: int = Field(0, ge=0)
    sold: int = Field(0, ge=0)
    total_value: float = Field(0.0, ge=0)
    in_stock_value: float = Field(0.0, ge=0)
    rate: Optional[float] = None


class OrderLinksResponse(BaseModel):
    """Pre-filled chat links for ordering a product."""

    whatsapp: str
    telegram: str
