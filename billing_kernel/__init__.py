"""
Billing Kernel

Infrastructure shared by the construction billing engine:
- Fixed-point money arithmetic
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Database engine/session management (PostgreSQL, SQLite for development)
- Locked-row sequence allocation for document numbers
- ORM immutability guards for issued invoices
"""

__version__ = "0.1.0"
