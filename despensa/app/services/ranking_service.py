from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from despensa.app.domain.state import LedgerState, logical_business_date


class RankingRequest(BaseModel):
    email: str
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def query_params(self) -> Dict[str, str]:
        params = {"email": self.email}
        if self.date_from:
            params["desde"] = self.date_from.isoformat()
        if self.date_to:
            params["hasta"] = self.date_to.isoformat()
        return params


class RankedProduct(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ean: str
    name: str = Field(alias="nombre")
    quantity_sold: float = Field(alias="cantidad")
    total_amount: float = Field(alias="total")
    percentage_by_quantity: float = Field(alias="porcentaje")


class RankingResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_sales: float = Field(default=0.0, alias="totalVentas")
    products: List[RankedProduct] = Field(default_factory=list, alias="productos")


def compute_ranking(
    state: LedgerState,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> RankingResponse:
    """
    Sales grouped by product over an optional inclusive date range, most
    units sold first. Store-credit charges are not sales and never count.
    """
    quantities: Dict[str, float] = {}
    totals: Dict[str, float] = {}
    names: Dict[str, str] = {}
    total_sales = 0.0

    for sale in state.sales:
        day = logical_business_date(sale, state.settings)
        if date_from and day < date_from:
            continue
        if date_to and day > date_to:
            continue
        total_sales += sale.total or 0.0
        for line in sale.line_items:
            quantities[line.ean] = quantities.get(line.ean, 0.0) + line.quantity
            totals[line.ean] = totals.get(line.ean, 0.0) + line.subtotal
            names.setdefault(line.ean, line.name)

    units = sum(quantities.values())
    ranked = sorted(quantities, key=lambda ean: (-quantities[ean], -totals[ean], ean))
    products = [
        RankedProduct(
            ean=ean,
            name=names[ean],
            quantity_sold=quantities[ean],
            total_amount=round(totals[ean], 2),
            percentage_by_quantity=round(quantities[ean] * 100.0 / units, 2) if units else 0.0,
        )
        for ean in ranked
    ]
    return RankingResponse(total_sales=round(total_sales, 2), products=products)
