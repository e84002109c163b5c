"""
ESU Remediation Module for the ESU Activation Agent

Provides:
- Selection of the next ESU year to activate
- Product key validation (rejects unfilled template keys)
- The guard -> check -> install -> activate -> re-check procedure
"""

import re
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..core.errors import ConfigurationError, EnvironmentCheckError
from ..core.logger import Logger
from ..utils.slmgr import LicenseManagerTool, mask_product_key
from ..utils import system
from .inventory import InventoryProvider, LicenseRecord, describe_records, query_license_inventory
from .compliance import is_compliant, licensed_years


SUPPORTED_OS_MAJOR = 10

# Template keys shipped in the default config: BBBBB-BBBBB-..., CCCCC-..., DDDDD-..., EEEEE-...
PLACEHOLDER_KEY_PATTERN = re.compile(r"^([BCDE])\1{4}(?:-\1{5}){4}$", re.IGNORECASE)


def validate_product_key(product_key: Optional[str]) -> bool:
    """Reject empty keys and unfilled template keys."""
    if not product_key or not product_key.strip():
        return False
    return PLACEHOLDER_KEY_PATTERN.match(product_key.strip()) is None


def select_target_year(
    product_keys: Dict[str, str],
    activation_ids: Dict[str, str],
    records: Sequence[LicenseRecord],
    logger: Optional[Logger] = None
) -> str:
    """
    Pick the first configured year that is not licensed yet.

    Args:
        product_keys: ordered year label -> product key
        activation_ids: activation ID -> year label
        records: current ESU inventory

    Returns:
        The selected year label; the first configured label when every
        configured year is already accounted for.
    """
    if not product_keys:
        raise ConfigurationError("No ESU product keys are configured")

    label_to_id = {label: aid.lower() for aid, label in activation_ids.items()}
    by_id: Dict[str, List[LicenseRecord]] = {}
    for record in records:
        by_id.setdefault(record.activation_id.lower(), []).append(record)

    for label in product_keys:
        activation_id = label_to_id.get(label)
        if activation_id is None:
            if logger:
                logger.warning(f"No activation ID is configured for {label}, skipping")
            continue

        if not any(r.is_licensed for r in by_id.get(activation_id, [])):
            return label

    first = next(iter(product_keys))
    if logger:
        logger.warning(f"No unlicensed year could be selected, falling back to {first}")
    return first


class EsuRemediator:
    """
    Install and activate an ESU key when no ESU entitlement is licensed.

    The tool's exit codes are logged but never trusted; success is decided
    by querying the license inventory again afterwards.
    """

    def __init__(
        self,
        config,
        logger: Logger,
        tool: Optional[LicenseManagerTool] = None,
        providers: Optional[Sequence[InventoryProvider]] = None,
        is_admin: Optional[Callable[[], bool]] = None,
        os_major_version: Optional[Callable[[], Optional[int]]] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config
        self.logger = logger
        self.tool = tool or LicenseManagerTool(
            slmgr_path=config.tools.slmgr_path,
            cscript_path=config.tools.cscript_path,
            timeout=config.tools.timeout_seconds
        )
        self.providers = providers
        self._is_admin = is_admin or system.is_admin
        self._os_major_version = os_major_version or system.get_os_major_version
        self._sleep = sleep

    def check_environment(self) -> None:
        """Abort unless elevated on a Windows 10 family OS."""
        if not self._is_admin():
            raise EnvironmentCheckError("Remediation must run with administrative privileges")

        major = self._os_major_version()
        if major != SUPPORTED_OS_MAJOR:
            raise EnvironmentCheckError(
                f"Unsupported OS major version {major}, expected {SUPPORTED_OS_MAJOR}"
            )

    def read_inventory(self) -> Tuple[List[LicenseRecord], bool]:
        """Query ESU records and evaluate compliance."""
        records = query_license_inventory(
            self.config.esu.known_activation_ids,
            providers=self.providers,
            logger=self.logger
        )
        labels = [self.config.esu.label_for(r.activation_id) or r.activation_id for r in records]
        self.logger.inventory_found(len(records), labels)
        for line in describe_records(records, self.config.esu):
            self.logger.info(line)
        return records, is_compliant(records)

    def _settle(self) -> None:
        delay = self.config.esu.settle_delay_seconds
        if delay > 0:
            self.logger.debug(f"Waiting {delay}s for the licensing service to settle")
            self._sleep(delay)

    def install_and_activate(self, year: str, product_key: str, activation_id: str) -> None:
        """Install the key and request activation; tool failures are only logged."""
        masked = mask_product_key(product_key)

        self.logger.info(f"Installing {year} product key {masked}")
        result = self.tool.install_product_key(product_key)
        self.logger.key_installed(year, masked, result.returncode)
        if not result.succeeded:
            self.logger.warning(f"Key installation returned exit code {result.returncode}: {result.output}")
        elif result.output:
            self.logger.debug(result.output)
        self._settle()

        self.logger.info(f"Requesting online activation for {year} ({activation_id})")
        result = self.tool.activate(activation_id)
        self.logger.activation_requested(year, activation_id, result.returncode)
        if not result.succeeded:
            self.logger.warning(f"Activation returned exit code {result.returncode}: {result.output}")
        elif result.output:
            self.logger.debug(result.output)
        self._settle()

    def remediate(self) -> bool:
        """Run the full procedure. Returns True when ESU is licensed afterwards."""
        self.check_environment()

        records, compliant = self.read_inventory()
        if compliant:
            self.logger.compliant(licensed_years(records, self.config.esu))
            self.logger.info("Nothing to remediate")
            return True
        self.logger.non_compliant()

        esu = self.config.esu
        year = select_target_year(esu.product_keys, esu.activation_ids, records, self.logger)
        self.logger.info(f"Selected {year} for activation")

        product_key = esu.product_keys.get(year, "")
        if not validate_product_key(product_key):
            raise ConfigurationError(
                f"Product key for {year} is missing or still a placeholder, update the configuration"
            )

        activation_id = esu.activation_id_for(year)
        if activation_id is None:
            raise ConfigurationError(f"No activation ID is configured for {year}")

        self.install_and_activate(year, product_key, activation_id)

        records, compliant = self.read_inventory()
        if compliant:
            self.logger.remediated(year)
            return True

        self.logger.remediation_failed("ESU is still not licensed after activation", year)
        if self.config.logging.verbose:
            details = self.tool.display_license_info(activation_id)
            self.logger.debug(f"slmgr /dlv {activation_id}:\n{details.output}")
        return False

    def run(self) -> int:
        """Process exit code: 0 when ESU is licensed, 1 otherwise."""
        try:
            return 0 if self.remediate() else 1
        except EnvironmentCheckError as e:
            self.logger.error(f"Aborting: {e}")
            return 1
        except Exception as e:
            self.logger.exception(f"Remediation failed: {e}")
            self.logger.remediation_failed(str(e))
            return 1
