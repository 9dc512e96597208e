"""Fields module: Background electromagnetic fields."""

from qed_cascade.fields.em_field import (EMField, StaticEMField, PlaneEMField,
                                         GaussianEMField, FocusingField, create_field)

__all__ = ["EMField", "StaticEMField", "PlaneEMField", "GaussianEMField",
           "FocusingField", "create_field"]
