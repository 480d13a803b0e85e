"""Main module for feed_ingest.

This module allows the server to be run as a Python module using:
python -m feed_ingest

It delegates to the server application's main function.
"""

import sys

from feed_ingest.server.app import main

if __name__ == "__main__":
    sys.exit(main(standalone_mode=False))
