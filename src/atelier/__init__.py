"""ATELIER: lifecycle coordination for made-to-order commissions."""

__version__ = "1.0.0"
