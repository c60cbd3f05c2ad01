from decimal import Decimal

import pytest
from pydantic import ValidationError

from vnsalary.core.models import Currency, InsuranceBasis, Mode, Region, SalaryRequest

def test_request_defaults():
    req = SalaryRequest(amount=Decimal("20000000"))
    assert req.mode == Mode.GROSS_TO_NET
    assert req.is_gross_mode
    assert req.currency == Currency.VND
    assert req.region == Region.I
    assert req.dependent_count == 0
    assert req.include_employer_union_fee is False

def test_request_coerces_form_values():
    req = SalaryRequest(amount="15000000", region=3, nationality="Foreign", tax_method="flat10",
                        mode="net_to_gross")
    assert req.amount == Decimal("15000000")
    assert req.region is Region.III
    assert not req.is_gross_mode

def test_foreign_currency_requires_exchange_rate():
    with pytest.raises(ValidationError, match="exchange_rate is required"):
        SalaryRequest(amount=Decimal("1000"), currency=Currency.USD)
    with pytest.raises(ValidationError):
        SalaryRequest(amount=Decimal("1000"), currency=Currency.JPY, exchange_rate=Decimal("0"))

def test_custom_basis_requires_positive_base():
    with pytest.raises(ValidationError, match="custom_insurance_base is required"):
        SalaryRequest(amount=Decimal("1000"), insurance_basis=InsuranceBasis.CUSTOM)
    with pytest.raises(ValidationError):
        SalaryRequest(amount=Decimal("1000"), insurance_basis=InsuranceBasis.CUSTOM,
                      custom_insurance_base=Decimal("-1"))

@pytest.mark.parametrize("field,value", [
    ("amount", Decimal("-1")),
    ("dependent_count", -1),
    ("region", 5),
])
def test_out_of_range_values_rejected(field, value):
    data = {"amount": Decimal("1000"), field: value}
    with pytest.raises(ValidationError):
        SalaryRequest(**data)

def test_request_is_immutable():
    req = SalaryRequest(amount=Decimal("1000"))
    with pytest.raises(ValidationError):
        req.amount = Decimal("2000")
