"""Allow running with: python -m albatross"""

from albatross.main import run

run()
