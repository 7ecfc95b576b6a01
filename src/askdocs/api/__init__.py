"""HTTP routers for the session-scoped document endpoints."""
