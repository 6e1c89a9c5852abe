"""Marker-framed diagnosis channel between the proxy and the orchestrator."""
