"""
Expense Sync - Source Package

Server side of an offline-first personal expense tracker. Clients record
expenses while offline and later submit them in batches; this package
reconciles those batches against the server copy.

DESIGN PRINCIPLES:
1. Every item in a batch gets its own result
2. One failed item never aborts the batch
3. Every applied operation leaves a ledger entry
4. Users only ever see and touch their own expenses
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Sync Team"
