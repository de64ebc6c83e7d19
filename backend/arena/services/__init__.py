"""Ledger, round lifecycle, bet placement and settlement services."""
