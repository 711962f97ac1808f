"""Packaged data files: built-in default policies and the config JSON Schema."""
