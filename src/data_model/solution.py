from dataclasses import dataclass, field
from enum import Enum
from typing_extensions import Literal
import polars as pl
import patito as pt

from data_model.engineering import literal_constraint

PHASES = Literal["a", "b", "c"]
PHASE_LABELS: dict[int, str] = {1: "a", 2: "b", 3: "c"}


class TerminationStatus(Enum):
    """Outcome of the nonlinear solve"""

    LOCALLY_SOLVED = "LOCALLY_SOLVED"
    OPTIMAL = "OPTIMAL"
    ALMOST_LOCALLY_SOLVED = "ALMOST_LOCALLY_SOLVED"
    LOCALLY_INFEASIBLE = "LOCALLY_INFEASIBLE"
    INFEASIBLE = "INFEASIBLE"
    DUAL_INFEASIBLE = "DUAL_INFEASIBLE"
    ITERATION_LIMIT = "ITERATION_LIMIT"
    TIME_LIMIT = "TIME_LIMIT"
    NUMERICAL_ERROR = "NUMERICAL_ERROR"
    INVALID_MODEL = "INVALID_MODEL"
    OTHER_ERROR = "OTHER_ERROR"


CONVERGED_STATUSES: frozenset[TerminationStatus] = frozenset(
    {TerminationStatus.LOCALLY_SOLVED, TerminationStatus.OPTIMAL}
)


@dataclass(frozen=True)
class RawSolution:
    """
    Solution of one solve. `bus` maps the bus id to its name, terminals, voltage magnitudes
    and voltage angles (radians), `gen` and `load` map their ids to per-phase injections.
    """

    termination_status: TerminationStatus
    objective: float
    solve_time: float
    bus: dict[str, dict] = field(default_factory=dict)
    gen: dict[str, dict] = field(default_factory=dict)
    load: dict[str, dict] = field(default_factory=dict)
    solver_message: str = ""

    @property
    def converged(self) -> bool:
        return self.termination_status in CONVERGED_STATUSES


class BusVoltageResult(pt.Model):
    bus_id: str = pt.Field(dtype=pl.Utf8)
    phase: PHASES = pt.Field(
        dtype=pl.Utf8, constraints=literal_constraint(pt.field, PHASES)
    )
    vm_pu: float = pt.Field(dtype=pl.Float64)
    va_deg: float = pt.Field(dtype=pl.Float64)
