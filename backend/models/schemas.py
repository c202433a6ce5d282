from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, StrictStr


# ── Candidate (extraction output, before persistence) ──
class CandidateItem(BaseModel):
    """A line item as returned by the vision model and edited by the user."""
    model_config = ConfigDict(extra="ignore")

    name: StrictStr = Field(min_length=1)
    description: Optional[StrictStr] = None
    price: StrictStr
    category: Optional[StrictStr] = None


# ── Receipt Item ───────────────────────────────────────
class ReceiptItem(BaseModel):
    id: int
    receipt_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    price: str                 # display form, e.g. "$3.49"
    price_cents: int
    currency: str
    category: Optional[str] = None
    created_at: str

    class Config:
        from_attributes = True


# ── Receipt ────────────────────────────────────────────
class Receipt(BaseModel):
    id: int
    store_name: Optional[str] = None
    total_amount: Optional[str] = None
    receipt_date: Optional[str] = None
    created_at: str

    class Config:
        from_attributes = True

class ReceiptWithItems(Receipt):
    items: List[ReceiptItem] = []

class ReceiptSummary(Receipt):
    item_count: int


# ── Inventory ──────────────────────────────────────────
class InventoryState(str, Enum):
    ACTIVE = "active"
    REMOVED = "removed"

class InventoryItemCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    quantity: str = "1"
    category: str = "Other"
    price: Optional[str] = None
    expiry_date: Optional[str] = None    # ISO date (YYYY-MM-DD)
    receipt_id: Optional[int] = None

class InventoryItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    quantity: Optional[str] = None
    category: Optional[str] = None
    price: Optional[str] = None
    expiry_date: Optional[str] = None

class InventoryItem(BaseModel):
    id: int
    name: str
    description: str = ""
    quantity: str = "1"
    category: str = "Other"
    price: Optional[str] = None
    expiry_date: Optional[str] = None
    state: InventoryState = InventoryState.ACTIVE
    receipt_id: Optional[int] = None
    created_at: str
    updated_at: str

    class Config:
        from_attributes = True

class InventorySummary(BaseModel):
    item_count: int
    total_value: dict[str, str]   # currency → formatted total, e.g. {"$": "$8.50"}
    by_category: dict[str, int]   # category → item count


# ── Recipes ────────────────────────────────────────────
class MealType(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

class DietaryPreference(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

class RecipeIngredient(BaseModel):
    id: Optional[int] = None
    name: str
    amount: Optional[str] = None
    unit: Optional[str] = None
    original: Optional[str] = None
    optional: bool = False

class Recipe(BaseModel):
    id: int
    title: str
    instructions: str = ""
    prep_time: Optional[int] = None
    cook_time: Optional[int] = None
    servings: Optional[int] = None
    calories: Optional[float] = None
    image_url: Optional[str] = None
    source_url: Optional[str] = None
    meal_type_id: Optional[int] = None
    ingredients: List[RecipeIngredient] = []
    dietary_preference_ids: List[int] = []


# ── Images ─────────────────────────────────────────────
class EnhanceImageRequest(BaseModel):
    image_url: Optional[str] = None
    enhancement_type: str = "color"   # 'color' | 'resolution'

class EnhanceImageResult(BaseModel):
    original_url: str
    enhanced_url: str


# ── Spending ───────────────────────────────────────────
class CategorySpending(BaseModel):
    currency: str
    by_category: dict[str, str]
    total: str

class MonthSummary(BaseModel):
    year: int
    month: int
    month_label: str       # e.g. "Feb 2026"
    currency: str
    total: str
    by_category: dict[str, str]
