"""Persistence for the transaction cache and the sync cursor."""
