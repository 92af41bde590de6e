"""
Factory functions for common map structures.
"""

from typing import Optional

from .basis_functions import MultivariateExpansion
from .map_options import MapOptions
from .monotone_component import MonotoneComponent
from .multi_index import MultiIndexSet
from .triangular_map import TriangularMap


def create_component(
    multi_set: MultiIndexSet, options: Optional[MapOptions] = None
) -> MonotoneComponent:
    """
    Create a monotone component whose expansion uses the terms in multi_set.

    Parameters
    ----------
    multi_set : MultiIndexSet
        Multi-indices of the expansion. Their length is the input dimension.
    options : MapOptions, optional
        Basis family, rectifier and quadrature settings.
    """
    options = options if options is not None else MapOptions()
    expansion = MultivariateExpansion(options.create_basis(), multi_set)
    return MonotoneComponent(expansion, options)


def create_triangular(
    input_dim: int,
    output_dim: int,
    total_order: int,
    options: Optional[MapOptions] = None,
) -> TriangularMap:
    """
    Create a triangular map with one monotone component per output.

    Component k depends on the first input_dim - output_dim + k + 1 inputs and
    uses all terms of total order up to ``total_order``.

    Parameters
    ----------
    input_dim : int
        Input dimension N of the map.
    output_dim : int
        Output dimension M <= N of the map.
    total_order : int
        Maximum total order of the terms in every component.
    options : MapOptions, optional
        Options passed to every component.
    """
    if output_dim < 1 or output_dim > input_dim:
        raise ValueError(
            f"output_dim must be between 1 and input_dim={input_dim}, "
            f"got {output_dim}."
        )
    if total_order < 0:
        raise ValueError(f"total_order must be nonnegative, got {total_order}.")

    options = options if options is not None else MapOptions()

    components = []
    for k in range(output_dim):
        dim = input_dim - output_dim + k + 1
        multi_set = MultiIndexSet.create_total_order(dim, total_order)
        components.append(create_component(multi_set, options))

    return TriangularMap(components)
