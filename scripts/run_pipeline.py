"""
Neighbourhood Pulse Pipeline Script
Runs every metric family and writes the score tables
"""

from neighbourhood_pulse.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
