"""
Configuration module.

Frozen defaults, YAML/environment loading with layered precedence, chain
entry parsing and validation.
"""
