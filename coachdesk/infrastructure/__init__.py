"""
Adapters to external systems.

- snowflake: client snapshots, one row per client
"""
