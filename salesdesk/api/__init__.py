"""HTTP adapter over the fulfillment services."""
