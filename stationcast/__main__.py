"""
Stationcast package __main__ entry point.

Allows running with: python -m stationcast
"""

import sys

from stationcast.app.radio import main

if __name__ == "__main__":
    sys.exit(main())
