import os
import tempfile
from decimal import Decimal

import pytest

# keep test runs from writing logs into the working tree
os.environ.setdefault("VNSALARY_LOG_PATH", tempfile.mkdtemp(prefix="vnsalary-logs-"))

from vnsalary.core.models import SalaryRequest
from vnsalary.tax.rates import DEFAULT_RATE_TABLE

@pytest.fixture
def rates():
    return DEFAULT_RATE_TABLE

@pytest.fixture
def make_request():
    def _make(amount=0, **kwargs):
        return SalaryRequest(amount=Decimal(amount), **kwargs)
    return _make
