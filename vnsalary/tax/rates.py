"""
Statutory rate tables: regional minimum wages, insurance rates and caps, PIT brackets.

A RateTable is plain configuration. Every calculation takes one as a parameter,
so a future legal update is a new table rather than a code change.
"""
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Annotated, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from vnsalary.core.models import Nationality, Region
from vnsalary.core.utils import atomic_write_json

Rate = Annotated[Decimal, Field(ge=0, le=1)]

class TaxBracket(BaseModel):
    model_config = ConfigDict(frozen=True)

    lower_bound: Decimal = Field(..., ge=0)
    upper_bound: Optional[Decimal] = None  # None: open-ended top bracket
    rate: Rate
    label: str = ""

    @property
    def width(self) -> Optional[Decimal]:
        if self.upper_bound is None:
            return None
        return self.upper_bound - self.lower_bound

class EmployeeRates(BaseModel):
    model_config = ConfigDict(frozen=True)

    social: Rate
    health: Rate
    unemployment_domestic: Rate
    unemployment_foreign: Rate

    def unemployment(self, nationality: Nationality) -> Decimal:
        if nationality == Nationality.FOREIGN:
            return self.unemployment_foreign
        return self.unemployment_domestic

class EmployerRates(EmployeeRates):
    union_fee: Rate

class RateTable(BaseModel):
    model_config = ConfigDict(frozen=True)

    effective_date: date
    source: str = ""
    regional_minimum_wage: Dict[Region, Decimal]
    base_salary: Decimal = Field(..., ge=0)
    insurance_cap_multiplier_base: int = Field(20, ge=0)
    insurance_cap_multiplier_regional: int = Field(20, ge=0)
    employee: EmployeeRates
    employer: EmployerRates
    tax_brackets: List[TaxBracket]
    personal_deduction: Decimal = Field(..., ge=0)
    dependent_deduction: Decimal = Field(..., ge=0)
    flat_tax_rate: Rate = Decimal("0.10")

    @field_validator("regional_minimum_wage", mode="before")
    @classmethod
    def _coerce_region_keys(cls, value):
        # JSON object keys arrive as "1".."4"
        if isinstance(value, dict):
            return {Region(int(k)): v for k, v in value.items()}
        return value

    @field_validator("regional_minimum_wage")
    @classmethod
    def _check_regions(cls, value: Dict[Region, Decimal]):
        missing = [r for r in Region if r not in value]
        if missing:
            raise ValueError(f"missing minimum wage for regions: {[int(r) for r in missing]}")
        if any(v < 0 for v in value.values()):
            raise ValueError("minimum wages must be non-negative")
        return value

    @model_validator(mode="after")
    def _check_brackets(self):
        brackets = self.tax_brackets
        if not brackets:
            raise ValueError("at least one tax bracket is required")
        if brackets[0].lower_bound != 0:
            raise ValueError("first tax bracket must start at 0")
        for prev, nxt in zip(brackets, brackets[1:]):
            if prev.upper_bound is None:
                raise ValueError(f"only the last bracket may be open-ended ({prev.label})")
            if nxt.lower_bound != prev.upper_bound:
                raise ValueError(f"brackets are not contiguous at {prev.upper_bound}")
        for b in brackets:
            if b.upper_bound is not None and b.upper_bound <= b.lower_bound:
                raise ValueError(f"bracket bounds must increase ({b.label})")
        if brackets[-1].upper_bound is not None:
            raise ValueError("last tax bracket must be open-ended")
        return self

    @property
    def social_health_cap(self) -> Decimal:
        return self.insurance_cap_multiplier_base * self.base_salary

    def minimum_wage(self, region: Region) -> Decimal:
        return self.regional_minimum_wage[Region(region)]

    def unemployment_cap(self, region: Region) -> Decimal:
        return self.insurance_cap_multiplier_regional * self.minimum_wage(region)

    def employee_insurance_rate(self, nationality: Nationality = Nationality.DOMESTIC) -> Decimal:
        return self.employee.social + self.employee.health + self.employee.unemployment(nationality)

def _brackets(rows) -> List[TaxBracket]:
    out = []
    lower = Decimal("0")
    for upper, rate, label in rows:
        out.append(TaxBracket(lower_bound=lower, upper_bound=upper, rate=rate, label=label))
        lower = upper
    return out

DEFAULT_RATE_TABLE = RateTable(
    effective_date=date(2024, 7, 1),
    source="Base salary per Decree 73/2023/ND-CP; regional minimum wages effective 2024-07-01",
    regional_minimum_wage={
        Region.I: Decimal("5220000"),
        Region.II: Decimal("4650000"),
        Region.III: Decimal("4080000"),
        Region.IV: Decimal("3650000"),
    },
    base_salary=Decimal("2340000"),
    insurance_cap_multiplier_base=20,
    insurance_cap_multiplier_regional=20,
    employee=EmployeeRates(
        social=Decimal("0.08"),
        health=Decimal("0.015"),
        unemployment_domestic=Decimal("0.01"),
        unemployment_foreign=Decimal("0"),
    ),
    employer=EmployerRates(
        social=Decimal("0.175"),
        health=Decimal("0.03"),
        unemployment_domestic=Decimal("0.01"),
        unemployment_foreign=Decimal("0"),
        union_fee=Decimal("0.02"),
    ),
    tax_brackets=_brackets([
        (Decimal("5000000"), Decimal("0.05"), "Up to 5M"),
        (Decimal("10000000"), Decimal("0.10"), "Over 5M to 10M"),
        (Decimal("18000000"), Decimal("0.15"), "Over 10M to 18M"),
        (Decimal("32000000"), Decimal("0.20"), "Over 18M to 32M"),
        (Decimal("52000000"), Decimal("0.25"), "Over 32M to 52M"),
        (Decimal("80000000"), Decimal("0.30"), "Over 52M to 80M"),
        (None, Decimal("0.35"), "Over 80M"),
    ]),
    personal_deduction=Decimal("11000000"),
    dependent_deduction=Decimal("4400000"),
    flat_tax_rate=Decimal("0.10"),
)

def load_rate_table(path: Union[str, Path]) -> RateTable:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Rate table file not found: {p}")
    return RateTable.model_validate_json(p.read_text(encoding="utf-8"))

def save_rate_table(table: RateTable, path: Union[str, Path]) -> str:
    atomic_write_json(str(path), table.model_dump(mode="json"))
    return str(path)
