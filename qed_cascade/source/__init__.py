"""Source module: Primary particle sampling."""

from qed_cascade.source.generator import SourceGenerator

__all__ = ["SourceGenerator"]
