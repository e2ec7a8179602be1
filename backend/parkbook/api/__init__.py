"""HTTP API support: request-scoped dependencies."""
