"""
Unit tests for the Tunnel Backoff Engine.

Test individual components in isolation:
- Loader stages (each stage with positive/negative cases)
- Policy models (matching ranks, delays, alternates)
- Policy matcher (precedence and fallback)
- Retry ledger (delay progression, overrides, resets)
- Unthrottle coordinator and engine facade
"""
