"""
Stock Kernel - PPE warehouse stock ledger

A ledger-backed stock engine with:
- Running balances per (warehouse, equipment type, status)
- Immutable movements carrying before/after balances
- Reversals (estornos) linked to the movement they undo
- Direct adjustments and atomic inventory counts
"""

__version__ = "0.1.0"
