"""
Business logic constants for the document converter backend.

These values are stable across environments (dev/staging/prod) and do not
need env-var overrides. For operational parameters that vary per environment
(quota limits, delays, table names), see config.py.
"""

from app.models.conversion import FormatKey

# --- Free tier ---
FREE_CONVERSION_LIMIT = 3

# --- File extension → FormatKey mapping ---
# Legacy Office extensions are accepted and treated as their OOXML successor.
EXTENSION_FORMAT_MAP: dict[str, FormatKey] = {
    "pdf": FormatKey.PDF,
    "doc": FormatKey.DOCX,
    "docx": FormatKey.DOCX,
    "ppt": FormatKey.PPTX,
    "pptx": FormatKey.PPTX,
    "xls": FormatKey.XLSX,
    "xlsx": FormatKey.XLSX,
}

# --- Format display labels ---
FORMAT_LABELS: dict[FormatKey, str] = {
    FormatKey.PDF: "PDF",
    FormatKey.DOCX: "DOCX",
    FormatKey.PPTX: "PPTX",
    FormatKey.XLSX: "XLSX",
}

# --- Output MIME types (used when delivering converted files) ---
FORMAT_MEDIA_TYPES: dict[FormatKey, str] = {
    FormatKey.PDF: "application/pdf",
    FormatKey.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    FormatKey.PPTX: "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    FormatKey.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

# =============================================================================
# SUBSCRIPTION CATALOG
# Default plans and bank transfer channels. Prices in IDR per month.
# Overridable as a whole through CATALOG_PATH (see services/catalog.py).
# =============================================================================

DEFAULT_PLANS: list[dict] = [
    {
        "id": "basic",
        "name": "Basic",
        "monthly_price": 29000,
        "features": [
            "50 konversi per bulan",
            "Semua format file",
            "Kecepatan standar",
            "Email support",
        ],
    },
    {
        "id": "pro",
        "name": "Pro",
        "monthly_price": 49000,
        "popular": True,
        "features": [
            "Konversi tanpa batas",
            "Semua format file",
            "Kecepatan prioritas",
            "Prioritas support",
            "Tanpa watermark",
        ],
    },
    {
        "id": "enterprise",
        "name": "Enterprise",
        "monthly_price": 99000,
        "features": [
            "Konversi tanpa batas",
            "Semua format file",
            "Kecepatan tercepat",
            "24/7 dedicated support",
            "API access",
            "Custom integration",
        ],
    },
]

DEFAULT_PAYMENT_CHANNELS: list[dict] = [
    {
        "id": "bca",
        "display_name": "Bank BCA",
        "account_number": "1234567890",
        "account_holder": "PT YPKP Indonesia",
    },
    {
        "id": "mandiri",
        "display_name": "Bank Mandiri",
        "account_number": "0987654321",
        "account_holder": "PT YPKP Indonesia",
    },
    {
        "id": "bni",
        "display_name": "Bank BNI",
        "account_number": "5678901234",
        "account_holder": "PT YPKP Indonesia",
    },
    {
        "id": "bri",
        "display_name": "Bank BRI",
        "account_number": "4321098765",
        "account_holder": "PT YPKP Indonesia",
    },
]

# --- Session header ---
SESSION_HEADER = "X-Session-ID"

# --- API metadata ---
API_TITLE = "Konversi Dokumen API"
API_VERSION = "0.1.0"
