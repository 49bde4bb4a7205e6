from dataclasses import dataclass, field, fields
from enum import Enum

from data_model.exceptions import InvalidConfigurationError


class FormulationKind(Enum):
    """Power flow formulations available for the model"""

    ACPU = "acpu"  # AC, polar voltage coordinates, unbalanced


class ProblemKind(Enum):
    """Optimization problems available for the model"""

    OPF = "opf"


@dataclass(frozen=True)
class OPFConfig:
    """Configuration of the unbalanced OPF pipeline"""

    base_power: float = 1.0
    power_scale_factor: float = 1000.0
    voltage_upper_bound: float = 1.10
    voltage_lower_bound: float = 0.94
    solver_verbosity: int = 1
    tolerance: float = 1e-8
    acceptable_tolerance: float = 1e-8
    solver_name: str = "ipopt"
    cost_generator_id: str = "1"
    # Polynomial coefficients, highest degree first
    generator_cost: tuple[float, ...] = field(default=(1.0, 0.0))
    validate_bounds: bool = False

    def __post_init__(self) -> None:
        if self.validate_bounds:
            self.check_voltage_bounds()

    def check_voltage_bounds(self) -> None:
        """
        Check that the configuration describes a non-empty voltage band.

        Raises:
            InvalidConfigurationError: If the lower voltage bound is not below the upper one.
        """
        if self.voltage_lower_bound >= self.voltage_upper_bound:
            raise InvalidConfigurationError(
                f"voltage lower bound {self.voltage_lower_bound} must be below upper bound {self.voltage_upper_bound}"
            )

    @classmethod
    def field_names(cls) -> set[str]:
        return {f.name for f in fields(cls)}


def default_config() -> OPFConfig:
    return OPFConfig()


@dataclass(frozen=True)
class SolverOptions:
    """Ipopt options of one solve"""

    print_level: int
    tol: float = 1e-8
    acceptable_tol: float = 1e-8

    def as_dict(self) -> dict[str, float | int]:
        return {
            "print_level": self.print_level,
            "tol": self.tol,
            "acceptable_tol": self.acceptable_tol,
        }
