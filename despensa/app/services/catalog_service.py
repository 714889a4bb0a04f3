from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from despensa.app.domain.state import LedgerState, Product, uuid_str
from despensa.app.money import pedidos_ya_price, rappi_price
from despensa.app.services.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _norm_code(code: object) -> str:
    return str(code or "").strip().lower()


def products_by_ean(products: Iterable[Product]) -> Dict[str, Product]:
    # Later entries win, matching how a duplicated EAN resolves in the catalog view.
    return {p.ean: p for p in products}


def find_product_by_code(products: Sequence[Product], code: str) -> Product:
    """Case-insensitive exact match on the scanned code."""
    wanted = _norm_code(code)
    if not wanted:
        raise NotFoundError("Ingresa un código.")
    for product in products:
        if _norm_code(product.ean) == wanted:
            return product
    raise NotFoundError("Código no encontrado en productos")


def search_products(products: Sequence[Product], term: str) -> List[Product]:
    needle = (term or "").strip().lower()
    if not needle:
        return list(products)
    return [
        p for p in products
        if needle in str(p.ean).lower() or needle in p.name.lower()
    ]


def channel_prices(product: Product) -> Dict[str, int]:
    return {
        "pedidos_ya": pedidos_ya_price(product.unit_price),
        "rappi": rappi_price(product.unit_price),
    }


def _validated_price(price: float) -> float:
    try:
        value = float(price)
    except (TypeError, ValueError):
        raise ValidationError("Precio inválido")
    if not math.isfinite(value) or value < 0:
        raise ValidationError("Precio inválido")
    return value


def add_product(state: LedgerState, ean: str, name: Optional[str], unit_price: float) -> LedgerState:
    code = str(ean or "").strip()
    if not code:
        raise ValidationError("Ingresa el EAN del artículo.")
    if any(str(p.ean) == code for p in state.products):
        raise ValidationError("Ya existe un producto con ese EAN. No se agregará.")
    product = Product(
        id=uuid_str(),
        ean=code,
        name=(name or "").strip() or "(sin nombre)",
        unit_price=_validated_price(unit_price),
    )
    return state.model_copy(update={"products": [*state.products, product]})


def update_price(state: LedgerState, product_id: str, unit_price: float) -> LedgerState:
    price = _validated_price(unit_price)
    if not any(p.id == product_id for p in state.products):
        raise NotFoundError("Producto no encontrado")
    products = [
        p.model_copy(update={"unit_price": price}) if p.id == product_id else p
        for p in state.products
    ]
    return state.model_copy(update={"products": products})


def remove_products(state: LedgerState, product_ids: Iterable[str]) -> LedgerState:
    doomed = set(product_ids)
    if not doomed:
        return state
    products = [p for p in state.products if p.id not in doomed]
    return state.model_copy(update={"products": products})


def merge_products(state: LedgerState, rows: Sequence[Product]) -> Tuple[LedgerState, int]:
    """
    Merge imported rows by EAN.

    Existing products keep their id and take the row's name and price; unknown
    EANs are appended with a fresh id. Returns the new state and the row count.
    """
    latest: Dict[str, Product] = {}
    for row in rows:
        latest[row.ean] = row

    # The catalog may hold several products per EAN; every one of them follows the row.
    merged: List[Product] = []
    for product in state.products:
        row = latest.get(product.ean)
        if row is not None:
            product = product.model_copy(update={"name": row.name or product.name, "unit_price": row.unit_price})
        merged.append(product)

    known = {product.ean for product in state.products}
    merged.extend(row.model_copy(update={"id": uuid_str()}) for ean, row in latest.items() if ean not in known)

    logger.info("Merged %s imported product rows into catalog of %s", len(rows), len(state.products))
    return state.model_copy(update={"products": merged}), len(rows)
