#!/usr/bin/env python3
"""
SpotCloud HTTP Server Runner
"""

from dotenv import load_dotenv

from spotcloud.crosscutting.logging import setup_logging
from spotcloud.interfaces.http import HTTPServer


def main():
    """Run the HTTP server."""
    load_dotenv()
    setup_logging(level='INFO', json_format=False)
    server = HTTPServer(
        host='localhost',
        port=3000,
        debug=True
    )
    server.run()


if __name__ == '__main__':
    main()
