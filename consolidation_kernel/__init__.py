"""
Consolidation Kernel

Core types for multi-entity financial consolidation:
- Exact-decimal monetary amounts with currency-mismatch safety
- Ownership percentages and consolidation-method determination
- Double-entry balance validation
- Typed exceptions and structured logging
"""

__version__ = "0.1.0"
