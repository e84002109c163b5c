"""
ESU Activation Agent - Detection Entry Point

Reports whether any Windows Extended Security Updates entitlement is
licensed on this machine. The exit code is the result:
    0 - compliant
    1 - not compliant, or the license inventory could not be read
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional, Sequence

from esu_agent.core.config import Config, get_config
from esu_agent.core.errors import ConfigurationError
from esu_agent.core.logger import Logger, setup_logger
from esu_agent.modules.inventory import (
    InventoryProvider, default_providers, describe_records, query_license_inventory
)
from esu_agent.modules.compliance import is_compliant, licensed_years


class EsuDetector:
    """Read-only ESU compliance check."""

    def __init__(
        self,
        config: Config,
        logger: Logger,
        providers: Optional[Sequence[InventoryProvider]] = None
    ):
        self.config = config
        self.logger = logger
        self.providers = providers

    def run(self) -> int:
        try:
            records = query_license_inventory(
                self.config.esu.known_activation_ids,
                providers=self.providers,
                logger=self.logger
            )
        except Exception as e:
            self.logger.exception(f"ESU license query failed: {e}")
            self.logger.agent_error(str(e), "detection")
            return 1

        labels = [self.config.esu.label_for(r.activation_id) or r.activation_id for r in records]
        self.logger.inventory_found(len(records), labels)
        for line in describe_records(records, self.config.esu):
            self.logger.info(line)
        for record in records:
            self.logger.debug(f"Raw record: {record}")

        if is_compliant(records):
            self.logger.compliant(licensed_years(records, self.config.esu))
            return 0

        self.logger.non_compliant()
        return 1


def build_parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("--config", type=Path, help="Path to configuration file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-dir", type=Path, help="Directory for the JSON log file")
    return parser


def load_config(args: argparse.Namespace) -> Config:
    """Load configuration and apply command line overrides."""
    config = get_config(args.config)
    if args.verbose:
        config.logging.verbose = True
    if args.log_dir:
        config.logging.local_path = str(args.log_dir)
    return config


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = build_parser("Detect Windows ESU activation state").parse_args(argv)

    try:
        config = load_config(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    logger = setup_logger(config, name="EsuDetection")
    providers = default_providers(config.tools.powershell_path, config.tools.timeout_seconds)
    sys.exit(EsuDetector(config, logger, providers).run())


if __name__ == "__main__":
    main()
