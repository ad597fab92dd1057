"""
Buddy subsystem.

Components:
- users.py: directory of known users
- relations.py: load/save helpers for per-user buddy relation lists
- matching.py: random pairing of unpaired users
- requests.py: explicit buddy requests, removal and active-buddy switching
"""
