"""CIDR membership testing and signed-request authentication for albatross-gate."""

__version__ = "1.0.0"
