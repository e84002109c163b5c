"""
ESU Activation Agent - Remediation Entry Point

Installs and activates the next configured ESU key when no ESU
entitlement is licensed, then verifies the result:
    0 - ESU licensed (already, or after remediation)
    1 - remediation not possible or not successful
"""

import sys
from typing import List, Optional

from esu_agent.core.errors import ConfigurationError
from esu_agent.core.logger import setup_logger
from esu_agent.detect import build_parser, load_config
from esu_agent.modules.inventory import default_providers
from esu_agent.modules.remediation import EsuRemediator


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = build_parser("Install and activate a Windows ESU product key").parse_args(argv)

    try:
        config = load_config(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    logger = setup_logger(config, name="EsuRemediation")
    providers = default_providers(config.tools.powershell_path, config.tools.timeout_seconds)
    sys.exit(EsuRemediator(config, logger, providers=providers).run())


if __name__ == "__main__":
    main()
