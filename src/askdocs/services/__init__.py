"""Service layer wiring extraction, retrieval and generation together."""
