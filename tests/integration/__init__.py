"""
Integration tests for the Tunnel Backoff Engine.

Drive the engine facade end to end (loader -> matcher -> ledger) with the
packaged default policies and a fake clock.
"""
