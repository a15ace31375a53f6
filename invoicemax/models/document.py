
import re
import uuid
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
HEX_COLOR_PATTERN = r"^#(?:[0-9a-fA-F]{3}){1,2}$"


class DocumentKind(str, Enum):
    INVOICE = "invoice"
    RECEIPT = "receipt"


class ColorScheme(str, Enum):
    BLUE = "blue"
    PURPLE = "purple"
    GREEN = "green"
    RED = "red"
    ORANGE = "orange"
    TEAL = "teal"
    INDIGO = "indigo"


# primary / secondary / light (table header) / dark (table header in dark mode)
PALETTES: dict[ColorScheme, dict[str, str]] = {
    ColorScheme.BLUE: {"primary": "#1e40af", "secondary": "#3b82f6", "light": "#dbeafe", "dark": "#1e3a8a"},
    ColorScheme.PURPLE: {"primary": "#7c3aed", "secondary": "#a855f7", "light": "#e9d5ff", "dark": "#4c1d95"},
    ColorScheme.GREEN: {"primary": "#059669", "secondary": "#10b981", "light": "#d1fae5", "dark": "#064e3b"},
    ColorScheme.RED: {"primary": "#dc2626", "secondary": "#ef4444", "light": "#fee2e2", "dark": "#7f1d1d"},
    ColorScheme.ORANGE: {"primary": "#ea580c", "secondary": "#f97316", "light": "#fed7aa", "dark": "#7c2d12"},
    ColorScheme.TEAL: {"primary": "#0d9488", "secondary": "#14b8a6", "light": "#ccfbf1", "dark": "#134e4a"},
    ColorScheme.INDIGO: {"primary": "#4338ca", "secondary": "#6366f1", "light": "#e0e7ff", "dark": "#312e81"},
}


def empty_or_email(value: str) -> str:
    if value and not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email format")
    return value


class LineItem(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    description: str = Field(default="", max_length=500)
    quantity: float = Field(default=1, ge=0, le=999999)
    unit_price: float = Field(default=0, ge=0, le=999999999)
    tax_rate: float = Field(default=0, ge=0, le=100)  # percent
    discount: float = Field(default=0, ge=0, le=100)  # percent


class PresentationSettings(BaseModel):
    color_scheme: ColorScheme = ColorScheme.BLUE
    # Receipt only
    dark_mode: bool = False
    watermark_enabled: bool = True
    watermark_color: str = Field(default="#9ca3af", pattern=HEX_COLOR_PATTERN)
    watermark_opacity: float = Field(default=20, ge=0, le=100)  # percent
    watermark_density: int = Field(default=30, ge=0, le=100)  # number of repeated marks

    @property
    def palette(self) -> dict[str, str]:
        return PALETTES[self.color_scheme]


class Document(BaseModel):
    """An invoice or receipt as edited by the user; the unit of preview, export and email."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: DocumentKind = DocumentKind.INVOICE

    # Business information
    business_name: str = Field(default="", max_length=200)
    business_logo: str = Field(default="", max_length=1000)
    business_address: str = Field(default="", max_length=500)
    business_phone: str = Field(default="", max_length=50)
    business_email: str = Field(default="", max_length=255)
    business_website: str = Field(default="", max_length=500)

    # Client information
    client_name: str = Field(default="", max_length=200)
    client_address: str = Field(default="", max_length=500)
    client_phone: str = Field(default="", max_length=50)
    client_email: str = Field(default="", max_length=255)

    # Document details
    invoice_number: str = Field(default="", max_length=100)
    invoice_date: str = Field(default="", max_length=50)
    due_date: str = Field(default="", max_length=50)
    payment_date: str | None = Field(default=None, max_length=50)
    payment_method: str | None = Field(default=None, max_length=100)
    currency: str = Field(default="NGN", min_length=1, max_length=10)

    items: list[LineItem] = Field(default_factory=list, max_length=1000)

    notes: str = Field(default="", max_length=5000)
    terms: str = Field(default="", max_length=3000)

    # Receipt only
    amount_paid: float | None = Field(default=None, ge=0, le=999999999)

    presentation: PresentationSettings = Field(default_factory=PresentationSettings)

    @field_validator("business_email", "client_email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return empty_or_email(value)

    @property
    def is_receipt(self) -> bool:
        return self.kind == DocumentKind.RECEIPT
