from .relaxation import initial_field, relax_field, relax_point
from .simulation import Simulation

__all__ = ["Simulation", "initial_field", "relax_field", "relax_point"]
