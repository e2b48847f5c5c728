"""Routers for the reference server."""
