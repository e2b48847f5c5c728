"""Request-scoped helpers shared by middleware and exception handlers."""
