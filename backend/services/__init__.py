"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP layer.

Modules:
    - matching: Driver lookup and scoring
    - order_management: Driver and customer actions on orders
    - dispatch: Assignment decisions, queueing, change-feed handling and sweeps
"""
