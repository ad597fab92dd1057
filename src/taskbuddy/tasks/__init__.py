"""
Task subsystem.

Components:
- task_store.py: load/save helpers for per-owner task lists
- task_service.py: owner-checked task operations that re-propagate sharing
"""
