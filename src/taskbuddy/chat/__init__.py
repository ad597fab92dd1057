"""Per-task conversations between two users and their unread counters."""
