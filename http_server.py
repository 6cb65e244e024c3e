#!/usr/bin/env python3
"""
Auraluxe HTTP Server Runner
"""

from auraluxe.crosscutting.config import get_config_manager
from auraluxe.crosscutting.logging import setup_logging
from auraluxe.interfaces.http import HTTPServer


def main():
    """Run the HTTP server."""
    config = get_config_manager().load()
    setup_logging(config.log_level)
    server = HTTPServer(
        host=config.host,
        port=config.port,
        debug=True,
        config=config,
    )
    server.run()


if __name__ == '__main__':
    main()
