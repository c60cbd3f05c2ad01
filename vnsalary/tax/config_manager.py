"""
Rate table management with versioning by effective date.
"""
from datetime import date
from pathlib import Path
from typing import Dict, List, Any, Optional, Union

from pydantic import ValidationError

from vnsalary.core.config import settings
from vnsalary.core.utils import setup_logging, mkdir_safe
from vnsalary.tax.rates import DEFAULT_RATE_TABLE, RateTable, load_rate_table, save_rate_table

class RateTableRepository:
    """Directory of rate tables, one JSON file per effective date."""

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)
        self.logger = setup_logging("rates")

    def _get_data_file(self, effective_date: date) -> Path:
        return self.data_dir / f"rates_{effective_date.isoformat()}.json"

    def load_all(self) -> List[RateTable]:
        """Load every rate table in the directory, skipping files that fail validation."""
        if not self.data_dir.exists():
            return []
        tables = []
        for path in sorted(self.data_dir.glob("rates_*.json")):
            try:
                tables.append(load_rate_table(path))
            except ValidationError as e:
                self.logger.error("Invalid rate table %s: %s", path.name, e)
        return tables

    def save(self, table: RateTable) -> str:
        mkdir_safe(str(self.data_dir))
        return save_rate_table(table, self._get_data_file(table.effective_date))

class RateTableManager:
    """
    Holds every known rate table version and the one currently in force.

    Readers take ``current`` once per calculation. Switching versions replaces the
    whole table reference in one assignment, so a calculation never sees fields from
    two different versions.
    """

    def __init__(self, data_dir: Optional[Union[str, Path]] = None,
                 tables: Optional[List[RateTable]] = None):
        self.logger = setup_logging("rates")
        self.repository = RateTableRepository(data_dir) if data_dir else None
        self._versions: Dict[date, RateTable] = {}
        for table in tables or []:
            self._versions[table.effective_date] = table
        if self.repository:
            for table in self.repository.load_all():
                self._versions[table.effective_date] = table
        if not self._versions:
            self._versions[DEFAULT_RATE_TABLE.effective_date] = DEFAULT_RATE_TABLE
        self._current = self.get_active_table()

    @property
    def current(self) -> RateTable:
        return self._current

    def versions(self) -> List[date]:
        return sorted(self._versions)

    def register(self, table: RateTable, persist: bool = False) -> RateTable:
        """Add or replace the version for ``table.effective_date``."""
        replaced = table.effective_date in self._versions
        self._versions[table.effective_date] = table
        if persist and self.repository:
            self.repository.save(table)
        self.logger.info("%s rate table effective %s (%s)",
                         "Replaced" if replaced else "Registered", table.effective_date, table.source)
        return table

    def get_active_table(self, effective_date: Optional[date] = None) -> RateTable:
        """Latest version effective on or before ``effective_date`` (today by default)."""
        if effective_date is None:
            effective_date = date.today()
        valid = [d for d in self._versions if d <= effective_date]
        if not valid:
            raise KeyError(f"no rate table effective on {effective_date}")
        return self._versions[max(valid)]

    def activate(self, effective_date: Optional[date] = None) -> RateTable:
        table = self.get_active_table(effective_date)
        self._current = table
        self.logger.info("Activated rate table effective %s", table.effective_date)
        return table

    def reload(self) -> RateTable:
        """Re-read the repository directory and activate the version in force today."""
        if self.repository:
            versions = dict(self._versions)
            for table in self.repository.load_all():
                versions[table.effective_date] = table
            self._versions = versions
        return self.activate()

    def get_config_stats(self) -> Dict[str, Any]:
        versions = self.versions()
        return {
            'total_versions': len(versions),
            'earliest': versions[0].isoformat(),
            'latest': versions[-1].isoformat(),
            'current': self._current.effective_date.isoformat(),
            'bracket_count': len(self._current.tax_brackets),
        }

_manager: Optional[RateTableManager] = None

def get_rate_manager() -> RateTableManager:
    global _manager
    if _manager is None:
        _manager = RateTableManager(settings.RATE_TABLE_DIR)
    return _manager

def get_rate_table() -> RateTable:
    """The process-wide rate table in force."""
    return get_rate_manager().current
