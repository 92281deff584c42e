"""
Pure domain layer.

Value helpers and time abstraction with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O (except SystemClock)
"""
