"""Business services: pricing, inventory ledger, audit and fulfillment."""
