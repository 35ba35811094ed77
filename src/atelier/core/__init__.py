"""Core primitives: enums, state tables, and the clock source."""
