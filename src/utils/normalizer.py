"""
Record normalizer for DWV listings.

Maps loosely-structured JSON items and HTML card fragments onto Listing.
Field resolution is table-driven: each field has an ordered list of key
paths (JSON) or regexes (HTML) and the first hit wins.
"""

import html
import math
import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import urljoin

from src.modules.listings.models import (
    DEFAULT_LOCATION,
    DEFAULT_PRICE,
    DEFAULT_TITLE,
    Listing,
    ListingStatus,
)

# ============================================
# Configuration Tables
# ============================================

# Keys that commonly wrap a list of items in API responses
WRAPPER_KEYS = (
    "data",
    "items",
    "results",
    "properties",
    "imoveis",
    "empreendimentos",
    "lancamentos",
    "listings",
)

# Max depth for the nested wrapper search
MAX_SEARCH_DEPTH = 4

# Field -> ordered dotted key paths (list indexes allowed)
ITEM_FIELD_PATHS: dict[str, list[str]] = {
    "title": ["titulo", "nome", "title", "name"],
    "price": ["preco", "valor", "price"],
    "location": ["endereco", "localizacao", "location", "address", "bairro"],
    "listing_url": ["url", "link", "href"],
    "image_url": ["imagem", "foto", "image", "thumbnail", "fotos.0.url"],
    "description": ["descricao", "description", "sobre"],
    "bedrooms": ["quartos", "dormitorios", "bedrooms"],
    "bathrooms": ["banheiros", "bathrooms"],
    "area_sq_ft": ["area", "metragem", "square_feet"],
    "property_type": ["tipo", "category", "property_type"],
    "agent_name": ["corretor.nome", "agent.name", "vendedor"],
    "agent_phone": ["corretor.telefone", "agent.phone", "telefone"],
    "features": ["caracteristicas", "features", "amenities"],
    "status": ["status", "situacao"],
}

# Status keyword -> ListingStatus (checked in order, substring match)
STATUS_KEYWORDS: list[tuple[str, ListingStatus]] = [
    ("vendid", ListingStatus.SOLD),
    ("sold", ListingStatus.SOLD),
    ("reservad", ListingStatus.PENDING),
    ("pending", ListingStatus.PENDING),
    ("pendente", ListingStatus.PENDING),
]

# Card field -> ordered (pattern, target); target "html" matches raw markup,
# "text" matches tag-stripped text
_FLAGS = re.IGNORECASE | re.DOTALL
CARD_PATTERNS: dict[str, list[tuple[re.Pattern, str]]] = {
    "title": [
        (re.compile(r"<h[1-6][^>]*>(.*?)</h[1-6]>", _FLAGS), "html"),
        (re.compile(r'<(div|span)[^>]*class="[^"]*titulo[^"]*"[^>]*>(.*?)</\1>', _FLAGS), "html"),
        (re.compile(r'<a[^>]*title="([^"]+)"', _FLAGS), "html"),
    ],
    "price": [
        (re.compile(r"R\$\s*[\d.,]+(?:\s*mil)?", _FLAGS), "text"),
        (re.compile(r'<(div|span)[^>]*class="[^"]*(?:preco|price)[^"]*"[^>]*>(.*?)</\1>', _FLAGS), "html"),
    ],
    "location": [
        (
            re.compile(
                r'<(div|span|p)[^>]*class="[^"]*(?:endereco|localizacao|location|address)[^"]*"[^>]*>(.*?)</\1>',
                _FLAGS,
            ),
            "html",
        ),
    ],
    "bedrooms": [
        (re.compile(r"(\d+)\s*(?:quartos?|dormit[óo]rios?|dorms?)", _FLAGS), "text"),
    ],
    "bathrooms": [
        (re.compile(r"(\d+)\s*(?:banheiros?|wcs?|baths?)", _FLAGS), "text"),
    ],
    "area_m2": [
        (re.compile(r"(\d+(?:[.,]\d+)*)\s*(?:m²|m2|metros?)", _FLAGS), "text"),
    ],
    "image_url": [
        (re.compile(r'<img[^>]*src="([^"]+)"', _FLAGS), "html"),
    ],
    "listing_url": [
        (re.compile(r'<a[^>]*href="([^"#][^"]*)"', _FLAGS), "html"),
    ],
}

SQ_FT_PER_M2 = 10.764

_TAG_RE = re.compile(r"<[^>]+>")
_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)*")
_THOUSANDS_RE = re.compile(r"\d{1,3}(?:\.\d{3})+")


# ============================================
# Generic Helpers
# ============================================


def get_path(data: Any, path: str) -> Any:
    """
    Resolve a dotted key path; numeric segments index into lists.

    Examples:
        >>> get_path({"fotos": [{"url": "a.jpg"}]}, "fotos.0.url")
        'a.jpg'
        >>> get_path({"a": 1}, "b.c") is None
        True
    """
    current = data
    for segment in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(segment)
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def first_value(data: Mapping, paths: list[str]) -> Any:
    """First non-empty value among the candidate paths."""
    for path in paths:
        value = get_path(data, path)
        if value is None or value == "" or value == []:
            continue
        return value
    return None


def clean_text(value: Any) -> str | None:
    """
    Strip tags, unescape entities and collapse whitespace.

    Examples:
        >>> clean_text("  <b>Casa&nbsp;Nova</b> ")
        'Casa Nova'
    """
    if value is None or isinstance(value, (dict, list)):
        return None
    text = html.unescape(_TAG_RE.sub(" ", str(value)))
    text = " ".join(text.split())
    return text or None


def parse_decimal(text: str) -> float | None:
    """
    Read a Brazilian-formatted number.

    Examples:
        >>> parse_decimal("85,5")
        85.5
        >>> parse_decimal("1.200")
        1200.0
    """
    match = _NUMBER_RE.search(text)
    if not match:
        return None
    number = match.group(0)
    if _THOUSANDS_RE.fullmatch(number):
        number = number.replace(".", "")
    elif "," in number:
        number = number.replace(".", "").replace(",", ".")
    try:
        parsed = float(number)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def to_int(value: Any) -> int | None:
    """
    Coerce a count or area to int.

    Examples:
        >>> to_int("3 quartos")
        3
        >>> to_int(2.0)
        2
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    number = parse_decimal(str(value))
    return int(number) if number is not None else None


def format_price(value: Any) -> str:
    """
    Format a raw price; numbers become Brazilian currency.

    Examples:
        >>> format_price(500000)
        'R$ 500.000'
        >>> format_price(1234.5)
        'R$ 1.234,5'
        >>> format_price(99.999)
        'R$ 100'
        >>> format_price(" R$ 450.000 ")
        'R$ 450.000'
        >>> format_price(None)
        'Preço sob consulta'
    """
    if value is None or isinstance(value, bool):
        return DEFAULT_PRICE
    if isinstance(value, (int, float)):
        if isinstance(value, float):
            if not math.isfinite(value):
                return DEFAULT_PRICE
            # centavos precision; anything smaller is dropped
            value = round(value, 2)
        if not value:
            return DEFAULT_PRICE
        if isinstance(value, int) or value.is_integer():
            text = f"{int(value):,}"
        else:
            text = f"{value:,.2f}".rstrip("0")
        # en-US separators -> pt-BR separators
        text = text.replace(",", "_").replace(".", ",").replace("_", ".")
        return f"R$ {text}"
    return clean_text(value) or DEFAULT_PRICE


def make_absolute_url(url: Any, base_url: str) -> str | None:
    """Resolve a possibly relative URL against base_url."""
    if not isinstance(url, str) or not url.strip():
        return None
    return urljoin(base_url, url.strip())


def parse_features(value: Any) -> list[str] | None:
    """
    Features from a list or a comma-separated string.

    Examples:
        >>> parse_features("piscina, churrasqueira")
        ['piscina', 'churrasqueira']
    """
    if isinstance(value, list):
        items = [clean_text(v.get("nome") or v.get("name")) if isinstance(v, Mapping) else clean_text(v) for v in value]
    elif isinstance(value, str):
        items = [clean_text(v) for v in value.split(",")]
    else:
        return None
    features = [item for item in items if item]
    return features or None


def parse_status(value: Any) -> ListingStatus:
    """Map a free-form status to ListingStatus (default active)."""
    if not isinstance(value, str):
        return ListingStatus.ACTIVE
    lowered = value.lower()
    for keyword, status in STATUS_KEYWORDS:
        if keyword in lowered:
            return status
    return ListingStatus.ACTIVE


# ============================================
# Item Location
# ============================================


def locate_items(data: Any) -> list:
    """
    Find the list of listing items in a decoded JSON payload.

    A top-level list is returned as-is; otherwise the first wrapper key
    holding a list; otherwise a bounded search of nested objects for a
    wrapper key holding a list of objects.

    Args:
        data: Decoded JSON

    Returns:
        List of raw items (possibly empty)
    """
    if isinstance(data, list):
        return data
    if not isinstance(data, Mapping):
        return []
    for key in WRAPPER_KEYS:
        value = data.get(key)
        if isinstance(value, list):
            return value
    return _search_nested(data, depth=1)


def _search_nested(data: Mapping, depth: int) -> list:
    if depth > MAX_SEARCH_DEPTH:
        return []

    children = [v for v in data.values() if isinstance(v, Mapping)]
    for child in children:
        for key in WRAPPER_KEYS:
            candidate = child.get(key)
            if isinstance(candidate, list) and any(isinstance(i, Mapping) for i in candidate):
                return candidate

    for child in children:
        found = _search_nested(child, depth + 1)
        if found:
            return found
    return []


# ============================================
# Normalizers
# ============================================


def normalize_item(raw: Any, source_url: str) -> Listing | None:
    """
    Normalize one structured (JSON) item.

    Args:
        raw: Raw item from an API response or embedded state
        source_url: URL the item came from; base for relative links

    Returns:
        Listing, or None for falsy or non-object input
    """
    if not raw or not isinstance(raw, Mapping):
        return None

    def pick(field: str) -> Any:
        return first_value(raw, ITEM_FIELD_PATHS[field])

    return Listing(
        title=clean_text(pick("title")) or DEFAULT_TITLE,
        price=format_price(pick("price")),
        location=clean_text(pick("location")) or DEFAULT_LOCATION,
        listing_url=make_absolute_url(pick("listing_url"), source_url) or source_url,
        image_url=make_absolute_url(pick("image_url"), source_url),
        description=clean_text(pick("description")),
        bedrooms=to_int(pick("bedrooms")),
        bathrooms=to_int(pick("bathrooms")),
        area_sq_ft=to_int(pick("area_sq_ft")),
        property_type=clean_text(pick("property_type")),
        agent_name=clean_text(pick("agent_name")),
        agent_phone=clean_text(pick("agent_phone")),
        features=parse_features(pick("features")),
        status=parse_status(pick("status")),
    )


def _match_card_field(field: str, fragment: str, text: str) -> str | None:
    for pattern, target in CARD_PATTERNS[field]:
        match = pattern.search(fragment if target == "html" else text)
        if match:
            # The content group is always the last one
            return match.group(match.lastindex or 0)
    return None


def normalize_card(fragment: str, source_url: str) -> Listing | None:
    """
    Normalize one HTML card fragment.

    Args:
        fragment: Markup of a single listing card
        source_url: Page URL; base for relative links

    Returns:
        Listing, or None when title, price and location all stay defaults
    """
    if not fragment:
        return None

    text = clean_text(fragment) or ""

    price_raw = _match_card_field("price", fragment, text)
    price = clean_text(price_raw)
    if price:
        price = price.rstrip(".,")

    area_sq_ft = None
    area_raw = _match_card_field("area_m2", fragment, text)
    if area_raw:
        area_m2 = parse_decimal(area_raw)
        if area_m2 is not None and math.isfinite(area_m2 * SQ_FT_PER_M2):
            area_sq_ft = round(area_m2 * SQ_FT_PER_M2)

    listing = Listing(
        title=clean_text(_match_card_field("title", fragment, text)) or DEFAULT_TITLE,
        price=price or DEFAULT_PRICE,
        location=clean_text(_match_card_field("location", fragment, text)) or DEFAULT_LOCATION,
        listing_url=make_absolute_url(_match_card_field("listing_url", fragment, text), source_url) or source_url,
        image_url=make_absolute_url(_match_card_field("image_url", fragment, text), source_url),
        bedrooms=to_int(_match_card_field("bedrooms", fragment, text)),
        bathrooms=to_int(_match_card_field("bathrooms", fragment, text)),
        area_sq_ft=area_sq_ft,
    )

    if listing.has_only_defaults:
        return None
    return listing
