
from pydantic import BaseModel, ConfigDict, Field, field_validator
from .document import Document, DocumentKind, LineItem, empty_or_email


class Profile(BaseModel):
    """Business defaults, one row per user."""

    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str
    business_name: str | None = Field(default=None, max_length=200)
    business_logo: str | None = Field(default=None, max_length=1000)
    business_address: str | None = Field(default=None, max_length=500)
    business_phone: str | None = Field(default=None, max_length=50)
    business_email: str | None = Field(default=None, max_length=255)
    business_website: str | None = Field(default=None, max_length=500)
    default_currency: str | None = Field(default=None, max_length=10)

    @field_validator("business_email")
    @classmethod
    def check_email(cls, value: str | None) -> str | None:
        return empty_or_email(value) if value else value


class Client(BaseModel):
    """Entry in the user's shared contact book (shared by invoice and receipt sessions)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str | None = None
    user_id: str
    name: str = Field(default="", max_length=200)
    address: str = Field(default="", max_length=500)
    phone: str = Field(default="", max_length=50)
    email: str = Field(default="", max_length=255)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return empty_or_email(value)


class Draft(BaseModel):
    """In-progress document metadata, one per (user, kind). Items live in SharedLineItems."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str | None = None
    user_id: str
    kind: DocumentKind
    invoice_number: str = Field(default="", max_length=100)
    invoice_date: str = Field(default="", max_length=50)
    due_date: str = Field(default="", max_length=50)
    payment_date: str = Field(default="", max_length=50)
    payment_method: str = Field(default="", max_length=100)
    currency: str = Field(default="NGN", max_length=10)
    notes: str = Field(default="", max_length=5000)
    terms: str = Field(default="", max_length=3000)
    amount_paid: float = Field(default=0, ge=0, le=999999999)


class SharedLineItems(BaseModel):
    """Line items keyed by user only, reused across invoice and receipt editing."""

    user_id: str
    items: list[LineItem] = Field(default_factory=list, max_length=1000)


class InvoiceRecord(BaseModel):
    """Immutable snapshot of a finalized document."""

    id: str
    user_id: str
    invoice_number: str
    kind: DocumentKind
    data: Document
    created_at: str
