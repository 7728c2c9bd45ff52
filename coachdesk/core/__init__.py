"""
Coaching domain logic.

Nothing under core imports FastAPI or Snowflake. The lifecycle rules
take snapshots and instants and return new snapshots, so they run the
same in tests as behind the API.
"""
