"""
Sales order fulfillment and pricing backend.

Takes customer-submitted orders from "requested" through operator
acceptance, workspace pricing adjustments, stock validation and final
commitment (inventory deduction, sale recording and audit trail).
"""

__version__ = "1.0.0"
