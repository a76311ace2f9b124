"""
Core package for shared utilities.

Configuration, structured logging and operator identity used across the
fulfillment services and the HTTP layer.
"""
