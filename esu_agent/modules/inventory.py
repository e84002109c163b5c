"""
License Inventory Module for the ESU Activation Agent

Reads SoftwareLicensingProduct records from the Windows licensing service
through an ordered list of providers:
- CIM via PowerShell (Get-CimInstance), preferred
- WMI via the wmi/pywin32 COM bindings, legacy fallback

Only records with an installed key and a known ESU activation ID are kept.
"""

import sys
import json
import subprocess
from enum import IntEnum
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

# Windows-specific imports
if sys.platform == 'win32':
    import wmi
    import pythoncom
else:
    wmi = None
    pythoncom = None

from ..core.errors import InventoryQueryError


PRODUCT_FIELDS = ["Name", "ID", "LicenseStatus", "PartialProductKey"]


class LicenseStatus(IntEnum):
    """SoftwareLicensingProduct.LicenseStatus values."""
    UNLICENSED = 0
    LICENSED = 1
    OOB_GRACE = 2
    OOT_GRACE = 3
    NON_GENUINE_GRACE = 4
    NOTIFICATION = 5
    EXTENDED_GRACE = 6

    @property
    def display_name(self) -> str:
        return _STATUS_NAMES[self]


_STATUS_NAMES = {
    LicenseStatus.UNLICENSED: "Unlicensed",
    LicenseStatus.LICENSED: "Licensed",
    LicenseStatus.OOB_GRACE: "OOBGrace",
    LicenseStatus.OOT_GRACE: "OOTGrace",
    LicenseStatus.NON_GENUINE_GRACE: "NonGenuineGrace",
    LicenseStatus.NOTIFICATION: "Notification",
    LicenseStatus.EXTENDED_GRACE: "ExtendedGrace",
}


def status_name(code: int) -> str:
    """Human readable name for a license status code."""
    try:
        return LicenseStatus(code).display_name
    except ValueError:
        return f"Unknown({code})"


@dataclass(frozen=True)
class LicenseRecord:
    """Snapshot of one licensing product as reported by the OS."""
    name: str
    activation_id: str
    status: int
    partial_product_key: Optional[str] = None

    @property
    def has_partial_key(self) -> bool:
        return bool(self.partial_product_key)

    @property
    def is_licensed(self) -> bool:
        return self.status == LicenseStatus.LICENSED

    @property
    def status_name(self) -> str:
        return status_name(self.status)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "LicenseRecord":
        """Build a record from a CIM/WMI property mapping."""
        raw_status = data.get("LicenseStatus")
        return cls(
            name=data.get("Name") or "",
            activation_id=(data.get("ID") or "").lower(),
            status=int(raw_status) if raw_status is not None else int(LicenseStatus.UNLICENSED),
            partial_product_key=data.get("PartialProductKey") or None
        )


class InventoryProvider:
    """A way of reading the full SoftwareLicensingProduct list."""

    name = "base"

    def fetch(self) -> List[LicenseRecord]:
        raise NotImplementedError


class CimInventoryProvider(InventoryProvider):
    """Query licensing products with Get-CimInstance through PowerShell."""

    name = "cim"

    def __init__(self, powershell_path: str = "powershell.exe", timeout: int = 120):
        self.powershell_path = powershell_path
        self.timeout = timeout

    def build_command(self) -> List[str]:
        script = (
            "Get-CimInstance -ClassName SoftwareLicensingProduct | "
            f"Select-Object {', '.join(PRODUCT_FIELDS)} | "
            "ConvertTo-Json -Compress"
        )
        return [
            self.powershell_path,
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy", "Bypass",
            "-Command", script
        ]

    def fetch(self) -> List[LicenseRecord]:
        try:
            result = subprocess.run(
                self.build_command(),
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise InventoryQueryError(f"PowerShell CIM query could not run: {e}") from e

        if result.returncode != 0:
            raise InventoryQueryError(
                f"PowerShell CIM query failed with exit code {result.returncode}: {result.stderr.strip()}"
            )

        return self.parse_output(result.stdout)

    @staticmethod
    def parse_output(output: str) -> List[LicenseRecord]:
        """Parse ConvertTo-Json output; a single product comes back as an object."""
        output = (output or "").strip()
        if not output:
            return []

        try:
            data = json.loads(output)
        except ValueError as e:
            raise InventoryQueryError(f"Unreadable CIM query output: {e}") from e

        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise InventoryQueryError(f"Unexpected CIM query output type: {type(data).__name__}")

        return [LicenseRecord.from_mapping(item) for item in data if isinstance(item, dict)]


class WmiInventoryProvider(InventoryProvider):
    """Query licensing products through the legacy WMI COM interface."""

    name = "wmi"

    def fetch(self) -> List[LicenseRecord]:
        if wmi is None:
            raise InventoryQueryError("WMI is only available on Windows")

        records = []
        try:
            pythoncom.CoInitialize()
            c = wmi.WMI()
            for product in c.SoftwareLicensingProduct(PRODUCT_FIELDS):
                records.append(LicenseRecord.from_mapping({
                    field_name: getattr(product, field_name, None) for field_name in PRODUCT_FIELDS
                }))
        except Exception as e:
            raise InventoryQueryError(f"WMI query failed: {e}") from e
        finally:
            pythoncom.CoUninitialize()

        return records


def default_providers(powershell_path: str = "powershell.exe", timeout: int = 120) -> List[InventoryProvider]:
    """Modern interface first, legacy second."""
    return [CimInventoryProvider(powershell_path, timeout), WmiInventoryProvider()]


def filter_esu_records(records: Iterable[LicenseRecord], known_ids: Iterable[str]) -> List[LicenseRecord]:
    """Keep records that have key material installed and a known ESU activation ID."""
    wanted = {aid.lower() for aid in known_ids}
    return [
        record for record in records
        if record.has_partial_key and record.activation_id.lower() in wanted
    ]


def query_license_inventory(
    known_ids: Iterable[str],
    providers: Optional[Sequence[InventoryProvider]] = None,
    logger=None
) -> List[LicenseRecord]:
    """
    Read the ESU license records installed on this machine.

    Providers are tried in order until one succeeds. An empty result is
    not an error.

    Raises:
        InventoryQueryError: every provider failed
    """
    if providers is None:
        providers = default_providers()

    errors = []
    for provider in providers:
        try:
            records = provider.fetch()
        except Exception as e:
            errors.append(f"{provider.name}: {e}")
            if logger:
                logger.warning(f"License query via {provider.name} failed: {e}")
            continue

        if logger:
            logger.debug(f"License query via {provider.name} returned {len(records)} product(s)")
        return filter_esu_records(records, known_ids)

    raise InventoryQueryError("All license inventory providers failed: " + "; ".join(errors))


def describe_records(records: Iterable[LicenseRecord], esu_config) -> Iterator[str]:
    """One log line per ESU record."""
    for record in records:
        label = esu_config.label_for(record.activation_id) or "Unknown"
        yield (
            f"{label}: {record.name} | Status: {record.status_name} ({record.status}) "
            f"| Partial key: {record.partial_product_key}"
        )
