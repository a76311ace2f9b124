"""Append-only audit trail for fulfillment actions."""
