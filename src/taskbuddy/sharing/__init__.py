"""Task sharing between buddies (full-list overwrite propagation)."""
