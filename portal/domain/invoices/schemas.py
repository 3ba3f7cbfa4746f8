"""Invoice domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

INVOICE_STATUSES = ["draft", "sent", "viewed", "partial", "paid", "overdue", "void", "cancelled"]
PAYMENT_METHODS = ["stripe", "paypal", "bank_transfer", "check", "cash", "credit"]
DISCOUNT_TYPES = ["percentage", "fixed"]


class LineItemInput(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: float = Field(1, gt=0)
    unit_price: int = Field(..., ge=0)  # cents


class InvoiceCreate(BaseModel):
    organization_id: int
    invoice_number: str = Field(..., min_length=1, max_length=50)
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    line_items: list[LineItemInput] = Field(..., min_length=1)
    discount_type: Optional[str] = None
    discount_value: int = Field(0, ge=0)
    tax_rate: int = Field(0, ge=0, le=10000)  # basis points
    currency: str = Field("USD", min_length=3, max_length=3)
    notes: Optional[str] = Field(None, max_length=5000)
    plan_assignment_id: Optional[int] = None

    @field_validator("discount_type")
    @classmethod
    def validate_discount_type(cls, v):
        if v is not None and v not in DISCOUNT_TYPES:
            raise ValueError(f"Discount type must be one of: {', '.join(DISCOUNT_TYPES)}")
        return v

    @model_validator(mode="after")
    def check_percentage(self):
        if self.discount_type == "percentage" and self.discount_value > 10000:
            raise ValueError("Percentage discount cannot exceed 100%")
        return self


class InvoiceUpdate(BaseModel):
    """Drafts accept every field; issued invoices only notes and due_date"""

    due_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=5000)
    issue_date: Optional[datetime] = None
    line_items: Optional[list[LineItemInput]] = Field(None, min_length=1)
    discount_type: Optional[str] = None
    discount_value: Optional[int] = Field(None, ge=0)
    tax_rate: Optional[int] = Field(None, ge=0, le=10000)

    @field_validator("discount_type")
    @classmethod
    def validate_discount_type(cls, v):
        if v is not None and v not in DISCOUNT_TYPES:
            raise ValueError(f"Discount type must be one of: {', '.join(DISCOUNT_TYPES)}")
        return v


class ManualPaymentCreate(BaseModel):
    amount: float = Field(..., description="Amount in dollars")
    payment_method: str
    payment_date: Optional[datetime] = None
    reference: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=2000)


class LineItemResponse(BaseModel):
    id: int
    description: str
    quantity: float
    unit_price: int
    amount: int
    sort_order: int

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: int
    invoice_id: int
    amount: int
    payment_method: str
    payment_source: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    payment_date: datetime
    recorded_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: int
    public_id: str
    organization_id: int
    invoice_number: str
    status: str
    issue_date: datetime
    due_date: Optional[datetime] = None
    subtotal: int
    discount_type: Optional[str] = None
    discount_value: int
    discount_amount: int
    tax_rate: int
    tax_amount: int
    total: int
    amount_paid: int
    balance_due: int
    currency: Optional[str] = None
    notes: Optional[str] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    voided_at: Optional[datetime] = None
    quickbooks_id: Optional[str] = None
    line_items: list[LineItemResponse] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
