"""Delivery stage derivation."""

from .deriver import BatchProgress, StageContext, StageView, batch_progress, classify_stop, coarse_stage, derive_stage

__all__ = [
    "BatchProgress",
    "StageContext",
    "StageView",
    "batch_progress",
    "classify_stop",
    "coarse_stage",
    "derive_stage",
]
