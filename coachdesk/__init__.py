"""
CoachDesk: client lifecycle management for fitness coaches.

Layout:
- core: lifecycle rules, no framework imports
- infrastructure: Snowflake persistence
- api: FastAPI routers and dependencies
- config: settings
"""

__version__ = "0.1.0"
