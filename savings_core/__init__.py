"""
Savings Core

Savings account aggregate with event-sourced persistence, idempotent
commands and optimistic concurrency control. All financial math uses
Decimal precision.
"""

__version__ = "1.0.0"
