from .graphx import assemble_tiles, plot_field
from .output_manager import OutputManager, sample_indices

__all__ = ["OutputManager", "assemble_tiles", "plot_field", "sample_indices"]
