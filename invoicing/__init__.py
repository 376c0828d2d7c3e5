"""
Invoicing Core - Source Package

The business core of a small-business invoicing app: settling payments
against invoices, claiming administrator-provisioned business profiles,
and rendering invoice documents from one normalized snapshot.

DESIGN PRINCIPLES:
1. Money is Decimal, never float
2. Every write is one acknowledged transaction
3. Fail early, fail visibly
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Invoicing Core Team"
