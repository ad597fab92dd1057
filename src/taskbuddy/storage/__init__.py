"""
Storage subsystem.

Components:
- keys.py: record categories and composite owner-key helpers
- record_store.py: SQLite-backed per-owner key-value store
"""
