"""
ESU compliance evaluation.
"""

from typing import Iterable, List

from .inventory import LicenseRecord, LicenseStatus


def is_compliant(records: Iterable[LicenseRecord]) -> bool:
    """True if at least one ESU record is fully licensed."""
    return any(record.status == LicenseStatus.LICENSED for record in records)


def licensed_years(records: Iterable[LicenseRecord], esu_config) -> List[str]:
    """Year labels that have a licensed record, in inventory order."""
    years = []
    for record in records:
        if not record.is_licensed:
            continue
        label = esu_config.label_for(record.activation_id) or record.activation_id
        if label not in years:
            years.append(label)
    return years
