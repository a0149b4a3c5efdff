"""
Concept registry.

Single source of truth for:
  - canonical concept name used by the record builder
  - ordered alias tags tried by the fact selector (first match wins)
  - expected unit
  - flow vs stock (flows are annualised in quarterly mode)

Alias lists carry US-GAAP names first, then IFRS (20-F / 40-F filers), then
FMP statement field names, so one registry serves both facts providers.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ConceptSpec:
    name: str
    tags: list[str] = field(default_factory=list)
    unit: str = "USD"
    flow: bool = True
    description: str = ""


CONCEPTS: dict[str, ConceptSpec] = {
    # --- income statement -------------------------------------------------
    "revenue": ConceptSpec(
        name="revenue",
        tags=[
            "Revenues",
            "RevenueFromContractWithCustomerExcludingAssessedTax",
            "SalesRevenueNet",
            "Revenue",
            "revenue",
        ],
        description="Total revenue / net sales.",
    ),
    "gross_profit": ConceptSpec(
        name="gross_profit",
        tags=["GrossProfit", "grossProfit"],
    ),
    "net_income": ConceptSpec(
        name="net_income",
        tags=["NetIncomeLoss", "ProfitLossAttributableToOwnersOfParent", "ProfitLoss", "netIncome"],
        description="Net income attributable to the parent.",
    ),
    "sga": ConceptSpec(
        name="sga",
        tags=[
            "SellingGeneralAndAdministrativeExpense",
            "SellingGeneralAndAdministrativeExpenses",
            "sellingGeneralAndAdministrativeExpenses",
        ],
    ),
    "rd": ConceptSpec(
        name="rd",
        tags=[
            "ResearchAndDevelopmentExpense",
            "ResearchAndDevelopmentExpenses",
            "researchAndDevelopmentExpenses",
        ],
    ),
    "ebit": ConceptSpec(
        name="ebit",
        tags=[
            "OperatingIncomeLoss",
            "EarningsBeforeInterestAndTaxes",
            "ProfitLossFromOperatingActivities",
            "ebit",
            "operatingIncome",
        ],
        description="Operating income used as EBIT.",
    ),
    "interest_expense": ConceptSpec(
        name="interest_expense",
        tags=["InterestExpense", "InterestExpenseDebt", "FinanceCosts", "interestExpense"],
    ),
    # --- balance sheet ----------------------------------------------------
    "total_assets": ConceptSpec(
        name="total_assets", tags=["Assets", "totalAssets"], flow=False,
    ),
    "total_liabilities": ConceptSpec(
        name="total_liabilities", tags=["Liabilities", "totalLiabilities"], flow=False,
    ),
    "equity": ConceptSpec(
        name="equity",
        tags=[
            "StockholdersEquity",
            "StockholdersEquityIncludingPortionAttributableToNoncontrollingInterest",
            "EquityAttributableToOwnersOfParent",
            "Equity",
            "totalStockholdersEquity",
        ],
        flow=False,
    ),
    "current_assets": ConceptSpec(
        name="current_assets",
        tags=["AssetsCurrent", "CurrentAssets", "totalCurrentAssets"],
        flow=False,
    ),
    "current_liabilities": ConceptSpec(
        name="current_liabilities",
        tags=["LiabilitiesCurrent", "CurrentLiabilities", "totalCurrentLiabilities"],
        flow=False,
    ),
    "retained_earnings": ConceptSpec(
        name="retained_earnings",
        tags=["RetainedEarningsAccumulatedDeficit", "RetainedEarnings", "retainedEarnings"],
        flow=False,
    ),
    "long_debt": ConceptSpec(
        name="long_debt",
        tags=[
            "LongTermDebt",
            "LongTermDebtNoncurrent",
            "LongTermDebtAndCapitalLeaseObligations",
            "NoncurrentPortionOfNoncurrentBorrowings",
            "longTermDebt",
        ],
        flow=False,
    ),
    "short_debt": ConceptSpec(
        name="short_debt",
        tags=[
            "DebtCurrent",
            "LongTermDebtCurrent",
            "CurrentBorrowings",
            "shortTermDebt",
        ],
        flow=False,
    ),
    # --- cash flow --------------------------------------------------------
    "operating_cash_flow": ConceptSpec(
        name="operating_cash_flow",
        tags=[
            "NetCashProvidedByUsedInOperatingActivities",
            "CashFlowsFromUsedInOperatingActivities",
            "operatingCashFlow",
            "netCashProvidedByOperatingActivities",
        ],
    ),
    "capex": ConceptSpec(
        name="capex",
        tags=[
            "PaymentsToAcquirePropertyPlantAndEquipment",
            "CapitalExpenditures",
            "PurchaseOfPropertyPlantAndEquipmentClassifiedAsInvestingActivities",
            "capitalExpenditure",
        ],
        description="Sign varies by provider; always used as abs().",
    ),
    "dividends": ConceptSpec(
        name="dividends",
        tags=[
            "PaymentsOfDividends",
            "PaymentsOfDividendsCommonStock",
            "DividendsPaidClassifiedAsFinancingActivities",
            "dividendsPaid",
            "commonDividendsPaid",
            "netDividendsPaid",
        ],
    ),
    "repurchases": ConceptSpec(
        name="repurchases",
        tags=[
            "PaymentsForRepurchaseOfCommonStock",
            "RepurchaseOfCommonStock",
            "PaymentsToAcquireOrRedeemEntitysShares",
            "commonStockRepurchased",
        ],
    ),
    # --- share count ------------------------------------------------------
    "shares": ConceptSpec(
        name="shares",
        tags=[
            "EntityCommonStockSharesOutstanding",
            "CommonStockSharesOutstanding",
            "weightedAverageShsOut",
        ],
        unit="shares",
        flow=False,
    ),
}
