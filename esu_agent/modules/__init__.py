"""
ESU Activation Agent - Modules
"""

from .inventory import LicenseRecord, LicenseStatus, query_license_inventory
from .compliance import is_compliant
from .remediation import EsuRemediator, select_target_year, validate_product_key

__all__ = [
    "LicenseRecord", "LicenseStatus", "query_license_inventory",
    "is_compliant", "EsuRemediator", "select_target_year", "validate_product_key",
]
