"""Entity models for the ATELIER persistence layer.

All models are frozen dataclasses.  Use :func:`dataclasses.replace`
for modifications (copy-on-write).
"""

from atelier.models.order import Order
from atelier.models.progress import ProgressState

__all__ = [
    "Order",
    "ProgressState",
]
