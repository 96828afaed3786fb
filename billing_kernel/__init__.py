"""
Billing Kernel

Shared foundation for trainer posting and school billing:
- Declarative ORM base with UUID keys and audit columns
- Engine/session management with transactional scope
- Injected clock and Decimal money helpers
- Typed exception hierarchy and operation results
- Structured JSON logging
"""

__version__ = "0.1.0"
