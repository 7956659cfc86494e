"""Backend-agnostic value types and contracts."""
