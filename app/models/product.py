"""
app/models/product.py

Purpose: Product listing model

- Seller reference, listing fields and media references
- Lifecycle status with the allowed transitions
- Channel message ids produced when published
- Admin review messages (cleared once decided)
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field


class ProductStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SOLD = "sold"


# rejected and sold are final
STATUS_TRANSITIONS: Dict[ProductStatus, Set[ProductStatus]] = {
    ProductStatus.PENDING: {ProductStatus.APPROVED, ProductStatus.REJECTED},
    ProductStatus.APPROVED: {ProductStatus.SOLD},
    ProductStatus.REJECTED: set(),
    ProductStatus.SOLD: set(),
}


def can_transition(from_status: ProductStatus, to_status: ProductStatus) -> bool:
    return to_status in STATUS_TRANSITIONS.get(from_status, set())


class ReviewMessage(BaseModel):
    """An approval request delivered to one admin."""

    chat_id: int
    message_id: int


class ProductDraft(BaseModel):
    """Fields accumulated during the submission flow."""

    images: List[str] = Field(default_factory=list)
    title: Optional[str] = None
    price: Optional[int] = None
    description: Optional[str] = None
    category: Optional[str] = None


class Product(BaseModel):
    id: str
    seller_id: int
    title: str
    description: str = ""
    price: int
    category: str = "Other"
    images: List[str] = Field(default_factory=list)
    status: ProductStatus = ProductStatus.PENDING
    channel_message_ids: List[int] = Field(default_factory=list)
    review_messages: List[ReviewMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    approved_by: Optional[int] = None

    @property
    def controls_message_id(self) -> Optional[int]:
        """The channel message carrying the buy/contact buttons."""
        if not self.channel_message_ids:
            return None
        return self.channel_message_ids[-1]
