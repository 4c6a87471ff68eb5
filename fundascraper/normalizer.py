"""
Normalization of raw funda listing objects into CanonicalListing records.

Raw listings come from several page layouts and site releases, so the same
logical field can sit under different keys and in different shapes (a bare
value, a one-element list, or nested in an object). Each canonical field is
read through an ordered list of accessor paths; the first path that yields a
value wins.
"""
import logging
import re
from typing import Any, Dict, Optional, Sequence, Tuple, Union
from urllib.parse import urlparse

from .models import CanonicalListing, Price
from .utils import FUNDA_BASE, clean_text, now_iso, to_float, to_int

logger = logging.getLogger(__name__)

MEDIA_URL_TEMPLATE = "https://cloud.funda.nl/valentina_media/{}/{}/{}.jpg"
DEFAULT_CURRENCY = "EUR"

Path = Tuple[Union[str, int], ...]

# Accessor paths per canonical field, highest precedence first
FIELD_RULES: Dict[str, Sequence[Path]] = {
    "street": (("address", "street_name"), ("address", "street")),
    "house_number": (("address", "house_number"),),
    "house_number_suffix": (("address", "house_number_suffix"),),
    "postal_code": (("address", "postal_code"), ("zipCode",), ("postal_code",)),
    "city": (("address", "city"), ("city",)),
    "municipality": (("address", "municipality"), ("municipality",)),
    "province": (("address", "province"), ("province",)),
    "neighbourhood": (("address", "neighbourhood"), ("neighbourhood",)),
    "price_amount": (
        ("price", "selling_price"),
        ("price", "rent_price"),
        ("price", "value"),
    ),
    "price_currency": (("price", "currency"),),
    "price_condition": (
        ("price", "selling_price_condition"),
        ("price", "rent_price_condition"),
    ),
    "floor_area": (("floor_area",), ("floorArea",)),
    "plot_area": (("plot_area",), ("plotArea",)),
    "rooms": (("number_of_rooms",), ("rooms",)),
    "bedrooms": (("number_of_bedrooms",), ("bedrooms",)),
    "energy_label": (("energy_label",), ("energyLabel",)),
    "object_type": (("object_type",), ("objectType",)),
    "construction_type": (("construction_type",), ("constructionType",)),
    "status": (("status",),),
    "publish_date": (("publish_date",), ("publishDate",)),
    "media_id": (("thumbnail_id",), ("thumbnailId",)),
    "image_url": (("images", 0, "url"), ("mainImage", "url"), ("photo",)),
    "url": (("object_detail_page_relative_url",), ("url",)),
    "internal_id": (("id",), ("global_id",), ("globalId",)),
}


def unwrap(value: Any) -> Any:
    """Take the first element of a list; pass scalars through."""
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _dig(raw: Any, path: Path) -> Any:
    cur = raw
    for key in path:
        cur = unwrap(cur) if isinstance(key, str) else cur
        if isinstance(key, str) and isinstance(cur, dict):
            cur = cur.get(key)
        elif isinstance(key, int) and isinstance(cur, list) and -len(cur) <= key < len(cur):
            cur = cur[key]
        else:
            return None
    return unwrap(cur)


def pick(raw: Any, field_name: str) -> Any:
    """First non-empty value among the accessor paths of ``field_name``."""
    for path in FIELD_RULES[field_name]:
        value = _dig(raw, path)
        if value is not None and value != "" and not isinstance(value, (dict, list)):
            return value
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return clean_text(str(value)) or None


def id_from_url(url: Optional[str]) -> Optional[str]:
    """Trailing numeric path segment of a detail-page URL."""
    if not url or not isinstance(url, str):
        return None
    m = re.search(r"(\d+)/?$", urlparse(url).path)
    return m.group(1) if m else None


def absolute_url(url: Optional[str]) -> Optional[str]:
    if not url or not isinstance(url, str):
        return None
    if url.startswith(("http://", "https://")):
        return url
    return FUNDA_BASE + (url if url.startswith("/") else "/" + url)


def media_url(media_id: Any) -> Optional[str]:
    """
    Build the CDN image URL from a numeric media id.

    The id is zero-padded to nine digits and split into three groups from
    the right, so longer ids keep every digit in the first group:
    223359004 -> .../223/359/004.jpg
    """
    n = to_int(media_id)
    if n is None or n < 0:
        return None
    digits = f"{n:09d}"
    return MEDIA_URL_TEMPLATE.format(digits[:-6], digits[-6:-3], digits[-3:])


def build_address(raw: Dict) -> Optional[str]:
    if isinstance(raw.get("address"), str):
        return _text(raw["address"])
    parts = [pick(raw, "street"), pick(raw, "house_number"), pick(raw, "house_number_suffix")]
    return _text(" ".join(str(p) for p in parts if p not in (None, "")))


def build_price(raw: Dict) -> Price:
    price = raw.get("price")
    amount = pick(raw, "price_amount")
    if amount is None and not isinstance(price, dict):
        amount = unwrap(price)
    return Price(
        amount=to_float(amount),
        currency=_text(pick(raw, "price_currency")) or DEFAULT_CURRENCY,
        condition=_text(pick(raw, "price_condition")),
    )


def derive_id(raw: Dict, url: Optional[str], page: int, position: int) -> str:
    """
    Listing identifier: URL id, then the explicit id fields, then
    "<page>-<position>".
    """
    url_id = id_from_url(url)
    internal_id = _text(pick(raw, "internal_id"))
    if url_id and internal_id and url_id != internal_id:
        logger.warning(f"Listing id mismatch: url={url_id} internal={internal_id} ({url})")
    return url_id or internal_id or f"{page}-{position}"


def normalize_listing(
    raw: Any,
    page: int = 1,
    position: int = 1,
    scraped_at: Optional[str] = None
) -> CanonicalListing:
    """Map one raw listing to a CanonicalListing. Never raises on odd input."""
    if not isinstance(raw, dict):
        raw = {}

    raw_url = pick(raw, "url")
    media_id = pick(raw, "media_id")
    image_url = media_url(media_id) if media_id is not None else None

    return CanonicalListing(
        id=derive_id(raw, raw_url, page, position),
        address=build_address(raw),
        postal_code=_text(pick(raw, "postal_code")),
        city=_text(pick(raw, "city")),
        municipality=_text(pick(raw, "municipality")),
        province=_text(pick(raw, "province")),
        neighbourhood=_text(pick(raw, "neighbourhood")),
        price=build_price(raw),
        floor_area=to_float(pick(raw, "floor_area")),
        plot_area=to_float(pick(raw, "plot_area")),
        rooms=to_int(pick(raw, "rooms")),
        bedrooms=to_int(pick(raw, "bedrooms")),
        energy_label=_text(pick(raw, "energy_label")),
        object_type=_text(pick(raw, "object_type")),
        construction_type=_text(pick(raw, "construction_type")),
        status=_text(pick(raw, "status")),
        publish_date=_text(pick(raw, "publish_date")),
        image_url=image_url or absolute_url(_text(pick(raw, "image_url"))),
        url=absolute_url(_text(raw_url)),
        scraped_at=scraped_at or now_iso(),
    )
