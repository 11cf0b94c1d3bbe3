"""Cardledger - household credit card ledger."""

__version__ = "0.1.0"
