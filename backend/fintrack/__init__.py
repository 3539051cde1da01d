"""Fintrack - personal-finance bookkeeping API (authentication and session core)."""
