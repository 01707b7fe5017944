"""
Domain layer for intake submission processing.

This layer contains:
- Data models (type-safe structures)
- Configuration and error taxonomy
- Business logic (recipient routing, composition, fan-out pipeline)
"""
