"""Inventory ledger: stock reads and guarded deductions."""
