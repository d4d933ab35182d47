"""Scripts, addresses, transactions, headers, fees and JSON views for a Bitcoin explorer API."""

__version__ = "0.1.0"