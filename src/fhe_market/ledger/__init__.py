"""Ledger access: web3 gateway to the task registry and an in-memory offline registry."""
