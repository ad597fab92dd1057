"""
Core domain layer.

Components:
- models.py: records persisted in the store (User, Task, BuddyRelation, ...)
- errors.py: error taxonomy surfaced to callers
- ports.py: Protocols the services depend on (record store, notifier)
- state.py: AppState wiring the services together
"""
