"""
Options controlling how map components are constructed.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .basis_functions import (
    HermiteFunction,
    PhysicistHermite,
    ProbabilistHermite,
    UnivariateBasis,
)
from .rectifier import Rectifier


class BasisTypes(Enum):
    ProbabilistHermite = "probabilist's hermite"
    PhysicistHermite = "physicist's hermite"
    HermiteFunctions = "hermite function"


class PosFuncTypes(Enum):
    Exp = "exponential"
    SoftPlus = "softplus"


def _as_enum(enum_type, value):
    """Accept an enum member, its name or its keyword string."""
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        for member in enum_type:
            if value == member.name or value.lower() == member.value:
                return member
    raise ValueError(
        f"{value!r} is not a valid {enum_type.__name__}. Options are: "
        + ", ".join(member.name for member in enum_type)
    )


@dataclass
class MapOptions:
    """
    Options for monotone map components.

    Parameters
    ----------
    basis_type : BasisTypes or str, default=BasisTypes.ProbabilistHermite
        Univariate family used in the tensor-product expansion.
    pos_func_type : PosFuncTypes or str, default=PosFuncTypes.SoftPlus
        Rectifier applied to the diagonal derivative before integration.
    quad_pts : int, default=20
        Number of Gauss-Legendre points for the integral over the last input.
    nugget : float, default=1e-8
        Nonnegative offset added to the rectified derivative. A positive value
        bounds the diagonal derivative away from zero, so the log determinant
        stays finite when the rectifier underflows. With a nugget of zero, an
        underflowing rectifier gives a log determinant of -inf.
    inverse_xtol : float, default=1e-10
        Bracket width below which the root search in ``inverse`` stops.
    inverse_ftol : float, default=1e-10
        Residual below which the root search in ``inverse`` stops.
    inverse_max_iterations : int, default=100
        Maximum number of Newton/bisection steps per inverse call.
    inverse_start_distance : float, default=2.
        Half-width of the initial bracket around the origin. The bracket is
        widened until it contains the root.
    """

    basis_type: BasisTypes = BasisTypes.ProbabilistHermite
    pos_func_type: PosFuncTypes = PosFuncTypes.SoftPlus
    quad_pts: int = 20
    nugget: float = 1e-8
    inverse_xtol: float = 1e-10
    inverse_ftol: float = 1e-10
    inverse_max_iterations: int = 100
    inverse_start_distance: float = 2.0

    def __post_init__(self):
        self.basis_type = _as_enum(BasisTypes, self.basis_type)
        self.pos_func_type = _as_enum(PosFuncTypes, self.pos_func_type)

        if self.quad_pts < 1:
            raise ValueError(f"quad_pts must be >= 1, got {self.quad_pts}")
        if self.nugget < 0:
            raise ValueError(f"nugget must be nonnegative, got {self.nugget}")
        if self.inverse_xtol <= 0 or self.inverse_ftol <= 0:
            raise ValueError("inverse_xtol and inverse_ftol must be positive.")
        if self.inverse_max_iterations < 1:
            raise ValueError(
                "inverse_max_iterations must be >= 1, got "
                f"{self.inverse_max_iterations}"
            )
        if self.inverse_start_distance <= 0:
            raise ValueError(
                "inverse_start_distance must be positive, got "
                f"{self.inverse_start_distance}"
            )

    def create_basis(self) -> UnivariateBasis:
        if self.basis_type == BasisTypes.ProbabilistHermite:
            return ProbabilistHermite()
        if self.basis_type == BasisTypes.PhysicistHermite:
            return PhysicistHermite()
        return HermiteFunction()

    def create_rectifier(self) -> Rectifier:
        return Rectifier(mode=self.pos_func_type.value)
