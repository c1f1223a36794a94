"""
database — SQLAlchemy schema and session factory for persisted connections.
"""
