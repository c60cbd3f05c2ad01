"""
Bulk salary calculation from CSV/Excel/JSON sheets, one request per row.
Rows are validated the way the input form validates them; invalid rows are reported, not raised.
"""
import pandas as pd
from pathlib import Path
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
import uuid

from pydantic import ValidationError

from vnsalary.core.models import SalaryRequest
from vnsalary.core.utils import setup_logging
from vnsalary.payroll.engine import PayrollEngine
from vnsalary.tax.rates import RateTable

REQUEST_FIELDS = list(SalaryRequest.model_fields)
DECIMAL_FIELDS = ['amount', 'exchange_rate', 'custom_insurance_base']
INT_FIELDS = ['region', 'dependent_count']
BOOL_FIELDS = ['include_employer_union_fee']

@dataclass
class BatchResult:
    """Outcome of one bulk run: computed lines plus per-row validation errors."""
    batch_id: str
    success: bool
    total_rows: int
    processed_rows: int
    error_rows: int
    row_errors: List[Dict[str, Any]]
    timestamp: str
    results: pd.DataFrame = field(default_factory=pd.DataFrame, repr=False)

    def to_dict(self):
        return {
            'batch_id': self.batch_id,
            'success': self.success,
            'total_rows': self.total_rows,
            'processed_rows': self.processed_rows,
            'error_rows': self.error_rows,
            'row_errors': self.row_errors,
            'timestamp': self.timestamp,
            'results': self.results.to_dict(orient='records'),
        }

class PayrollBulkProcessor:
    """Runs many salary requests against one rate table snapshot."""

    def __init__(self, rates: Optional[RateTable] = None):
        self.engine = PayrollEngine(rates)
        self.logger = setup_logging("bulk")

    def get_template(self) -> pd.DataFrame:
        """Example sheet with every supported column."""
        return pd.DataFrame([
            {
                'line_id': 'EMP001',
                'amount': 20000000,
                'mode': 'gross_to_net',
                'currency': 'VND',
                'exchange_rate': None,
                'insurance_basis': 'official',
                'custom_insurance_base': None,
                'tax_method': 'progressive',
                'region': 1,
                'dependent_count': 1,
                'nationality': 'VN',
                'include_employer_union_fee': False,
            },
            {
                'line_id': 'EMP002',
                'amount': 2000,
                'mode': 'net_to_gross',
                'currency': 'USD',
                'exchange_rate': 25000,
                'insurance_basis': 'custom',
                'custom_insurance_base': 10000000,
                'tax_method': 'progressive',
                'region': 1,
                'dependent_count': 0,
                'nationality': 'Foreign',
                'include_employer_union_fee': True,
            },
        ])

    def load_frame(self, file_path: str) -> pd.DataFrame:
        ext = Path(file_path).suffix.lower()
        if ext == ".csv":
            return pd.read_csv(file_path, dtype=str)
        if ext in (".xls", ".xlsx"):
            return pd.read_excel(file_path, dtype=str)
        if ext == ".json":
            return pd.read_json(file_path, dtype=False)
        raise ValueError(f"Unsupported file type: {ext}")

    def _normalize_row(self, row: pd.Series) -> Dict[str, Any]:
        rec = {}
        for name in REQUEST_FIELDS:
            if name not in row.index:
                continue
            val = row[name]
            if val is None or pd.isna(val) or str(val).strip() == "":
                continue
            if hasattr(val, "item"):
                val = val.item()
            text = str(val).strip()
            if name in DECIMAL_FIELDS:
                rec[name] = text.replace(",", "").replace("VND", "").strip()
            elif name in INT_FIELDS:
                try:
                    rec[name] = int(Decimal(text))
                except InvalidOperation:
                    rec[name] = text
            elif name in BOOL_FIELDS:
                rec[name] = val if isinstance(val, bool) else text.lower() in ("1", "true", "yes", "y")
            elif name == 'currency':
                rec[name] = text.upper()
            else:
                rec[name] = text
        return rec

    def _result_row(self, line_id: Any, result) -> Dict[str, Any]:
        b = result.breakdown
        return {
            'line_id': line_id,
            'currency': result.currency.value,
            'mode': 'gross_to_net' if result.is_gross_mode else 'net_to_gross',
            'original_amount': float(result.original_amount),
            'gross': float(result.gross),
            'net': float(result.net),
            'gross_vnd': float(b.gross_vnd),
            'net_vnd': float(b.net_vnd),
            'insurance_total': float(b.insurance.total),
            'taxable_income': float(b.taxable_income),
            'personal_income_tax': float(b.personal_income_tax),
            'employer_total': float(b.employer.total),
            'total_employer_cost': float(b.total_employer_cost),
            'converged': result.converged,
        }

    def process_frame(self, df: pd.DataFrame) -> BatchResult:
        batch_id = str(uuid.uuid4())
        requests = []
        line_ids = []
        row_errors = []
        for idx, row in df.iterrows():
            line_id = row['line_id'] if 'line_id' in row.index and not pd.isna(row['line_id']) else idx
            try:
                requests.append(SalaryRequest(**self._normalize_row(row)))
                line_ids.append(line_id)
            except ValidationError as e:
                messages = [f"{'.'.join(str(p) for p in err['loc']) or 'row'}: {err['msg']}" for err in e.errors()]
                row_label = idx.item() if hasattr(idx, "item") else idx
                row_errors.append({'row': row_label, 'line_id': str(line_id), 'errors': messages})
                self.logger.warning("Batch %s row %s rejected: %s", batch_id, idx, "; ".join(messages))

        results = self.engine.run_payroll(requests)
        frame = pd.DataFrame([self._result_row(lid, r) for lid, r in zip(line_ids, results)])
        self.logger.info("Batch %s: %d rows computed, %d rejected", batch_id, len(results), len(row_errors))
        return BatchResult(
            batch_id=batch_id,
            success=not row_errors,
            total_rows=len(df),
            processed_rows=len(results),
            error_rows=len(row_errors),
            row_errors=row_errors,
            timestamp=datetime.now().isoformat(),
            results=frame,
        )

    def process_file(self, file_path: str) -> BatchResult:
        return self.process_frame(self.load_frame(file_path))
