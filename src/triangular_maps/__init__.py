"""
Triangular Maps

Block lower triangular transport maps built from monotone components, with
coefficient training against a standard Gaussian reference.
"""

from triangular_maps.basis_functions import (
    HermiteFunction,
    MultivariateExpansion,
    PhysicistHermite,
    ProbabilistHermite,
)
from triangular_maps.coefficients import CoeffBuffer, CoeffView
from triangular_maps.errors import ConvergenceWarning, ForcedStop, OptimizationWarning
from triangular_maps.identity_map import IdentityMap
from triangular_maps.map_base import ConditionalMapBase, ParameterizedFunctionBase
from triangular_maps.map_factory import create_component, create_triangular
from triangular_maps.map_options import BasisTypes, MapOptions, PosFuncTypes
from triangular_maps.monotone_component import MonotoneComponent
from triangular_maps.multi_index import MultiIndex, MultiIndexSet
from triangular_maps.objectives import (
    KLObjective,
    log_pullback_density,
    log_pullback_density_input_grad,
)
from triangular_maps.rectifier import Rectifier
from triangular_maps.train import (
    OptimizationResult,
    TrainOptions,
    result_message,
    train_map,
)
from triangular_maps.triangular_map import TriangularMap

__version__ = "1.0.0"
__all__ = [
    "MultiIndex",
    "MultiIndexSet",
    "ProbabilistHermite",
    "PhysicistHermite",
    "HermiteFunction",
    "MultivariateExpansion",
    "CoeffBuffer",
    "CoeffView",
    "ParameterizedFunctionBase",
    "ConditionalMapBase",
    "IdentityMap",
    "MonotoneComponent",
    "TriangularMap",
    "MapOptions",
    "BasisTypes",
    "PosFuncTypes",
    "Rectifier",
    "create_component",
    "create_triangular",
    "KLObjective",
    "log_pullback_density",
    "log_pullback_density_input_grad",
    "TrainOptions",
    "OptimizationResult",
    "result_message",
    "train_map",
    "ConvergenceWarning",
    "OptimizationWarning",
    "ForcedStop",
]
