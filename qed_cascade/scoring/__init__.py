"""Scoring module: Histograms."""

from qed_cascade.scoring.histogram import Histogram

__all__ = ["Histogram"]
