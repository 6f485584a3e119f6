"""Product-listing payload parser.

The listing endpoint normally answers JSON, but the commerce backend behind
it can also serve the same document as XML.  :class:`ProductListParser`
tries JSON first and falls back to XML, producing the same typed record
either way.  Only the stock-level status of the first product drives the
watcher; the rest of the schema is kept for ``!status`` output and
debugging.
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Optional

from core.errors import ParseError

logger = logging.getLogger(__name__)

_PREVIEW_BYTES = 128
# Elements that repeat inside an XML document and must always decode to lists.
_LIST_TAGS = {"products", "categoryHierarchy", "sieProductFeatures"}


@dataclass
class Price:
    """Price breakdown of a listed product."""

    value: float = 0.0
    currency_iso: str = ""
    currency_symbol: str = ""
    base_price: str = ""
    decimal_price: str = ""


@dataclass
class Product:
    """A single entry of the listing response."""

    code: str
    name: str = ""
    base_product: str = ""
    url: str = ""
    price: Price = field(default_factory=Price)
    stock_level_status: str = ""
    release_date_display: str = ""
    street_date: Optional[str] = None
    purchasable: bool = False
    pre_order_product: bool = False
    max_order_quantity: int = 0


@dataclass
class ProductListResponse:
    """Decoded listing document."""

    current_page: int = 0
    total_page_count: int = 0
    total_product_count: int = 0
    products: list[Product] = field(default_factory=list)


@dataclass(frozen=True)
class ProductStatus:
    """The part of a listing the watcher acts on."""

    stock_level_status: str
    product_code: str

    @classmethod
    def from_product(cls, product: Product) -> ProductStatus:
        return cls(stock_level_status=product.stock_level_status, product_code=product.code)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def _build_product(raw: dict[str, Any]) -> Product:
    price = raw.get("price") or {}
    stock = raw.get("stock") or {}
    street_date = raw.get("streetDate")
    return Product(
        code=_as_str(raw.get("code")),
        name=_as_str(raw.get("name")),
        base_product=_as_str(raw.get("baseProduct")),
        url=_as_str(raw.get("url")),
        price=Price(
            value=_as_float(price.get("value")),
            currency_iso=_as_str(price.get("currencyIso")),
            currency_symbol=_as_str(price.get("currencySymbol")),
            base_price=_as_str(price.get("basePrice")),
            decimal_price=_as_str(price.get("decimalPrice")),
        ),
        stock_level_status=_as_str(stock.get("stockLevelStatus")),
        release_date_display=_as_str(raw.get("releaseDateDisplay")),
        street_date=_as_str(street_date) if street_date else None,
        purchasable=_as_bool(raw.get("purchasable")),
        pre_order_product=_as_bool(raw.get("preOrderProduct")),
        max_order_quantity=_as_int(raw.get("maxOrderQuantity")),
    )


def _build_response(document: dict[str, Any]) -> ProductListResponse:
    raw_products = document.get("products") or []
    if not isinstance(raw_products, list):
        raise ValueError("'products' is not a list")
    return ProductListResponse(
        current_page=_as_int(document.get("currentPage")),
        total_page_count=_as_int(document.get("totalPageCount")),
        total_product_count=_as_int(document.get("totalProductCount")),
        products=[_build_product(p) for p in raw_products if isinstance(p, dict)],
    )


def _element_to_value(element: ET.Element) -> Any:
    """Convert an XML element into the dict/list/str shape the JSON uses."""
    children = list(element)
    if not children:
        return (element.text or "").strip()

    result: dict[str, Any] = {}
    for child in children:
        tag = child.tag.split("}", 1)[-1]
        if tag == "products" and len(child) and all(
            grandchild.tag.split("}", 1)[-1] == "product" for grandchild in child
        ):
            # <products><product>...</product></products> wrapper form.
            result.setdefault(tag, []).extend(_element_to_value(g) for g in child)
            continue
        value = _element_to_value(child)
        if tag in _LIST_TAGS:
            result.setdefault(tag, []).append(value)
        else:
            result[tag] = value
    return result


class ProductListParser:
    """Stateless parser turning a raw listing payload into a :class:`ProductListResponse`."""

    def parse(self, payload: bytes) -> ProductListResponse:
        """Decode *payload*, trying JSON first and XML second.

        Raises :class:`ParseError` with a short preview of the payload when
        neither format yields a listing document.
        """
        try:
            return self._parse_json(payload)
        except (ValueError, TypeError, AttributeError) as json_exc:
            logger.debug("JSON decode failed (%s); trying XML", json_exc)
            try:
                return self._parse_xml(payload)
            except (ET.ParseError, ValueError, TypeError, AttributeError) as xml_exc:
                preview = payload[:_PREVIEW_BYTES].decode("utf-8", errors="replace")
                logger.error("Parsing: %s", json_exc)
                logger.info("Error preamble... %s...", preview)
                raise ParseError(
                    f"listing is neither JSON ({json_exc}) nor XML ({xml_exc}): "
                    f"{preview!r}..."
                ) from json_exc

    @staticmethod
    def _parse_json(payload: bytes) -> ProductListResponse:
        document = json.loads(payload)
        if not isinstance(document, dict):
            raise ValueError("listing JSON is not an object")
        return _build_response(document)

    @staticmethod
    def _parse_xml(payload: bytes) -> ProductListResponse:
        root = ET.fromstring(payload)
        document = _element_to_value(root)
        if not isinstance(document, dict):
            raise ValueError("listing XML has no child elements")
        return _build_response(document)
