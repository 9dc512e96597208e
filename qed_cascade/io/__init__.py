"""IO module: YAML configuration and HDF5 output."""

from qed_cascade.io.config import load_config, config_from_dict, build_simulation
from qed_cascade.io.output import HDF5Output, OutputManager

__all__ = ["load_config", "config_from_dict", "build_simulation",
           "HDF5Output", "OutputManager"]
