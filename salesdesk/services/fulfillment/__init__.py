"""
Sales order fulfillment package.

Import submodules explicitly (enums, errors, workspace, state_machine,
repository, service) to avoid circular imports with the ORM models.
"""
