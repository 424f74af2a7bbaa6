"""Consent ledger."""
