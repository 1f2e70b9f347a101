"""Blueprints of the Contract Ledger JSON API."""
