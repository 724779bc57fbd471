"""API route modules."""

from ember.api.routes import accounts, captures, memories, wake

__all__ = ["accounts", "captures", "memories", "wake"]
