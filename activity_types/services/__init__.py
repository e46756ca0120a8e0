"""
High-level use cases for the activity type engine.

Each service module orchestrates repositories and the pure ordering rules to
implement business operations (batch update, default seeding, user creation).

Callers (scripts, an eventual transport layer) should call these services
instead of opening sessions or touching the repositories directly.
"""
