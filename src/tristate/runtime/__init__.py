"""Runtime - stream primitives and observability."""
