"""
Order dispatch engine.

This package handles:
    - Deciding auto-assign vs. broadcast vs. escalation for each order (orchestrator)
    - Holding orders that found no driver (queue)
    - Reacting to order change events (events, intake)
    - Periodic sweeps for orders that slipped through (sweeper)

Services are wired together once per process in ``engine.build_engine``;
import from the submodules directly.
"""
