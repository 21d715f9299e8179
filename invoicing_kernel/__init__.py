"""
Invoicing Kernel

Shared foundation for the GST invoicing engine:
- Money and currency value objects with explicit rounding
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging
- Injectable clock
- SQLAlchemy declarative base and session helpers
"""

__version__ = "0.1.0"
