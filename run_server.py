"""Run the garage door service from a source checkout."""

import sys

from garagedoor.server import main

if __name__ == "__main__":
    sys.exit(main())
