"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - token_ledger: Category token wallets, transfers and redemptions
    - ride_management: Core ride lifecycle operations
"""
