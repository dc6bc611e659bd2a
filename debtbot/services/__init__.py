"""External services: row storage and profile lookup."""
