"""Buddy engagement: congratulations and nudges driven by a polling loop."""
