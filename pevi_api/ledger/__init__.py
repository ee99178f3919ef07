"""Ledger network access and transaction builders."""
