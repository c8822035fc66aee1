"""Routers owned by the entrypoint itself (health, smoke test)."""
