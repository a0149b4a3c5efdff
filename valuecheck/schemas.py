"""
CompanyRecord: the JSON body of GET /stock/{ticker}.

Fields are snake_case in Python and camelCase on the wire
(model_dump(by_alias=True)). Every metric is Optional: a missing input yields
null, never an error.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class StockMetrics(_Record):
    gross_margin: float | None = None
    sga_efficiency: float | None = None
    rd_reliance: float | None = None
    net_margin: float | None = None
    consistent_earnings: int | None = None
    consistent_earnings_years: int | None = None
    consistent_earnings_pass: bool | None = None
    interest_coverage: float | None = None
    debt_to_equity: float | None = None
    roe: float | None = None
    capex_efficiency: float | None = None


class Snapshots(_Record):
    shareholder_yield: float | None = None
    solvency: str = "Unknown"
    altman_z: float | None = None


class DcfRange(_Record):
    low: float | None = None
    base: float | None = None
    high: float | None = None


class Valuation(_Record):
    dcf: DcfRange = DcfRange()
    graham: float | None = None
    lynch: float | None = None
    implied_growth: float | None = None    # percent, 1 dp
    current: float | None = None           # market price


class ProvenanceEntry(_Record):
    tag: str | None = None
    unit: str | None = None
    fiscal_year: int | None = None
    period_end: str | None = None
    form: str | None = None


class CompanyRecord(_Record):
    ticker: str
    name: str | None = None
    industry: str | None = None
    price: float | None = None
    market_cap: float | None = None
    shares_outstanding: float | None = None
    currency: str = "USD"
    period: str = "annual"
    last_updated: str
    metrics: StockMetrics = StockMetrics()
    snapshots: Snapshots = Snapshots()
    valuation: Valuation = Valuation()
    provenance: dict[str, list[ProvenanceEntry]] = {}

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
