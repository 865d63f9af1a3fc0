"""GasWatch — gas-leak detector gateway."""

__version__ = "0.1.0"
