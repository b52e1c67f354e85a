"""Process entry point: ``garagedoor-service [--config PATH]``."""

from __future__ import annotations

import argparse
import logging
import sys

from garagedoor import create_app, socketio
from garagedoor.config import load_config, setup_logging
from garagedoor.domain.exceptions import ConfigurationError


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="garagedoor-service", description="Garage door controller service")
    parser.add_argument(
        "--config",
        help="Path to config.yaml or its directory (default: $GARAGEDOOR_CONFIG_PATH, then the working directory)",
    )
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        app = create_app(config, bootstrap_runtime=True)
    except ConfigurationError as e:
        setup_logging()
        logging.getLogger(__name__).critical("Invalid configuration: %s", e)
        return 1

    logging.getLogger(__name__).info("Server starting on http://%s:%s", config.bind_host, config.bind_port)
    socketio.run(
        app,
        host=config.bind_host,
        port=config.bind_port,
        debug=False,
        use_reloader=False,
        allow_unsafe_werkzeug=True,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
