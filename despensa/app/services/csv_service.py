from __future__ import annotations

import csv
import io
import json
import math
from typing import List, Sequence

from despensa.app.domain.state import LedgerState, Product, dump_state, uuid_str
from despensa.app.services.exceptions import ValidationError

CSV_COLUMNS = ("ean", "nombre", "precio")

TEMPLATE_ROWS = [
    ("7790001000012", "Leche entera 1L", "1899"),
    ("7790001000029", "Arroz 1kg", "2150"),
]


def _delimiter(raw: str) -> str:
    return ";" if ";" in raw and "," not in raw else ","


def _parse_price(raw: str) -> float:
    text = (raw or "0").strip().replace(".", "").replace(",", ".", 1)
    try:
        value = float(text)
    except ValueError:
        return math.nan
    return value


def parse_products_csv(raw: str) -> List[Product]:
    """
    Parse `ean,nombre,precio` rows (comma or semicolon separated).

    The header is required, in any order and case. Rows without an EAN or
    with an unreadable price are skipped.
    """
    lines = [line.strip() for line in (raw or "").splitlines() if line.strip()]
    if not lines:
        return []

    reader = csv.reader(lines, delimiter=_delimiter(raw))
    header = [h.strip().lower() for h in next(reader)]
    if any(col not in header for col in CSV_COLUMNS):
        raise ValidationError(
            "CSV inválido. Debe incluir columnas: ean,nombre,precio (separadas por coma o punto y coma)."
        )
    i_ean, i_name, i_price = (header.index(col) for col in CSV_COLUMNS)

    out: List[Product] = []
    for cols in reader:
        cols = [c.strip() for c in cols]

        def col(i: int) -> str:
            return cols[i] if i < len(cols) else ""

        ean = col(i_ean)
        if not ean:
            continue
        price = _parse_price(col(i_price))
        if not math.isfinite(price):
            continue
        out.append(Product(id=uuid_str(), ean=ean, name=col(i_name) or "(sin nombre)", unit_price=price))
    return out


def _format_price(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}".replace(".", ",")


def export_products_csv(products: Sequence[Product], *, delimiter: str = ",") -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=delimiter, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for p in products:
        writer.writerow([p.ean, p.name, _format_price(p.unit_price)])
    return buf.getvalue()


def template_csv() -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    writer.writerows(TEMPLATE_ROWS)
    return buf.getvalue()


def export_backup_json(state: LedgerState) -> str:
    return json.dumps(dump_state(state), ensure_ascii=False, indent=2)
