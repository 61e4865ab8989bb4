"""
Personal Ledger - Source Package

A personal finance ledger: deposit cash into a balance, open
interest-bearing investments against it, edit or close them and
get prorated gains credited back on close.

DESIGN PRINCIPLES:
1. Money only moves through the ledger engine
2. Bad input is rejected, never silently corrected
3. A failed save never leaves a half-applied operation behind
4. Every operation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Personal Ledger Team"
