"""
Quote Kernel

Document lifecycle engine for commercial quotations and the orders they
convert into:
- Quotation and order status state machines
- Monetary calculations with round-half-to-even at currency precision
- Aggregated business-rule validation
- Atomic, idempotent quotation-to-order conversion
"""

__version__ = "0.1.0"
