"""
autoexport_kernel -- persistence, domain vocabulary, errors and logging of
the vehicle-export ledger core.

Import rules: the kernel MUST NOT import from autoexport_engines,
autoexport_services or autoexport_config.
"""
