# tools/generate_demo_csv.py
from __future__ import annotations

import csv
import random
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple


@dataclass(frozen=True)
class Aisle:
    name: str
    min_price: int
    max_price: int
    ean_prefix: str


AISLES: List[Aisle] = [
    Aisle("Almacén", 600, 4500, "779001"),
    Aisle("Bebidas", 900, 6500, "779002"),
    Aisle("Lácteos", 700, 3800, "779003"),
    Aisle("Limpieza", 800, 7200, "779004"),
    Aisle("Golosinas", 150, 1800, "779005"),
]

NAMES = {
    "Almacén": ["Arroz 1kg", "Fideos 500g", "Harina 1kg", "Azúcar 1kg", "Yerba 1kg", "Aceite 900ml"],
    "Bebidas": ["Gaseosa 2.25L", "Agua 1.5L", "Cerveza 1L", "Jugo 1L", "Vino tinto 750ml"],
    "Lácteos": ["Leche entera 1L", "Yogur 1kg", "Queso cremoso kg", "Manteca 200g"],
    "Limpieza": ["Lavandina 1L", "Detergente 750ml", "Jabón en polvo 3kg", "Esponja"],
    "Golosinas": ["Alfajor", "Chicle", "Chocolate 100g", "Caramelos"],
}


def ean13(prefix: str, serial: int) -> str:
    """12 digits plus the EAN-13 check digit."""
    body = f"{prefix}{serial:06d}"[:12]
    total = sum(int(d) * (3 if i % 2 else 1) for i, d in enumerate(body))
    return body + str((10 - total % 10) % 10)


def write_csv(path: Path, rows: List[Tuple[str, str, int]], delimiter: str = ",") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f, delimiter=delimiter)
        w.writerow(["ean", "nombre", "precio"])
        for r in rows:
            w.writerow(r)


def generate(seed: int = 7, unpriced_share: float = 0.05) -> List[Tuple[str, str, int]]:
    """
    One row per product name and aisle.

    A small share of products get price 0, the way a freshly imported
    catalog looks before someone fills the prices in at the register.
    """
    rng = random.Random(seed)
    rows: List[Tuple[str, str, int]] = []
    serial = 1
    for aisle in AISLES:
        for name in NAMES[aisle.name]:
            price = 0 if rng.random() < unpriced_share else rng.randrange(aisle.min_price, aisle.max_price, 10)
            rows.append((ean13(aisle.ean_prefix, serial), name, price))
            serial += 1
    rng.shuffle(rows)
    return rows


if __name__ == "__main__":
    out = Path("data/demo_productos.csv")
    rows = generate(seed=42)
    write_csv(out, rows)
    print(f"Wrote {len(rows)} rows to {out}")
