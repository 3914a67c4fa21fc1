"""
Pallet Kernel

Domain values, typed errors and structured logging shared by the pallet
ledger engines:
- Immutable ledger transactions and partner configuration
- Injectable clock for deterministic as-of evaluation
- Machine-readable error codes
- JSON structured logging
"""

__version__ = "0.1.0"
