"""Business services for the order lifecycle.

Services receive their store, clock and collaborators through the
constructor so that the same code runs under Flask, the CLI and tests.
"""
