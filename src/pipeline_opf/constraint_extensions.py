"""
Operational constraints added on top of the power flow model.

An extension only has to implement `apply`, which adds its pyomo components to the model
instance and returns the created constraint handles. The `ConstraintRegistry` keeps these
handles per extension name so that they can be inspected after the solve.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable
import polars as pl
import pyomo.environ as pyo
from pyomo.core.base.constraint import ConstraintData

from data_model.exceptions import UnknownBusPhaseError
from helpers import generate_log
from pipeline_opf.data_manager import OPFModelInstance

log = generate_log(name=__name__)

REQUIRED_PHASES: tuple[int, ...] = (1, 2, 3)


class ConstraintExtension(ABC):
    name: str
    key_names: tuple[str, ...]

    @abstractmethod
    def apply(self, model_instance: OPFModelInstance) -> dict[tuple, ConstraintData]:
        """Add the constraints to the model and return their handles by key"""


@dataclass(frozen=True)
class VoltageMagnitudeBound(ConstraintExtension):
    """Per-unit voltage magnitude band applied to every phase of every bus"""

    upper: float
    lower: float
    name: str = "voltage_magnitude_bound"
    key_names: tuple[str, ...] = ("bus_i", "phase")

    def apply(
        self, model_instance: OPFModelInstance
    ) -> dict[tuple[int, int], ConstraintData]:
        model = model_instance.model
        bus_terminals = model_instance.math.bus_terminals
        keys: list[tuple[int, int]] = []
        for bus in sorted(bus_terminals):
            missing = set(REQUIRED_PHASES).difference(bus_terminals[bus])
            if missing:
                raise UnknownBusPhaseError(
                    f"bus {bus} does not expose phases {sorted(missing)}"
                )
            keys.extend((bus, phase) for phase in REQUIRED_PHASES)

        if self.lower > self.upper:
            log.warning(
                f"Voltage lower bound {self.lower} is above upper bound {self.upper}, the model is infeasible"
            )
        model.add_component(f"{self.name}_index", pyo.Set(initialize=keys, ordered=True))
        model.add_component(
            f"{self.name}_lower", pyo.Param(initialize=self.lower, mutable=True)
        )
        model.add_component(
            f"{self.name}_upper", pyo.Param(initialize=self.upper, mutable=True)
        )
        lower = getattr(model, f"{self.name}_lower")
        upper = getattr(model, f"{self.name}_upper")
        model.add_component(
            self.name,
            pyo.Constraint(
                getattr(model, f"{self.name}_index"),
                rule=lambda m, b, φ: (lower, m.vm[b, φ], upper),
            ),
        )
        constraint = getattr(model, self.name)
        return {key: constraint[key] for key in keys}


class ConstraintRegistry:
    """Side table of the constraint handles created by each extension"""

    def __init__(self) -> None:
        self.__handles: dict[str, dict[tuple, ConstraintData]] = {}
        self.__key_names: dict[str, tuple[str, ...]] = {}

    @property
    def names(self) -> list[str]:
        return list(self.__handles)

    def apply(
        self, extension: ConstraintExtension, model_instance: OPFModelInstance
    ) -> dict[tuple, ConstraintData]:
        handles = extension.apply(model_instance)
        self.__handles[extension.name] = handles
        self.__key_names[extension.name] = extension.key_names
        log.info(f"Constraint extension '{extension.name}': {len(handles)} constraints")
        return handles

    def apply_all(
        self,
        extensions: Iterable[ConstraintExtension],
        model_instance: OPFModelInstance,
    ) -> None:
        for extension in extensions:
            self.apply(extension, model_instance)

    def handles(self, name: str) -> dict[tuple, ConstraintData]:
        return self.__handles[name]

    def constraint_count(self, name: str | None = None) -> int:
        if name is not None:
            return len(self.__handles[name])
        return sum(len(handles) for handles in self.__handles.values())

    def duals(self, name: str, model_instance: OPFModelInstance) -> pl.DataFrame:
        """
        Dual values of the constraints of one extension, as imported by the solver.

        Returns:
            pl.DataFrame: One row per constraint with its key and dual value (null when the
                solver did not return any).
        """
        dual = model_instance.model.dual  # type: ignore
        return pl.DataFrame(
            [
                (*key, dual.get(constraint))
                for key, constraint in self.__handles[name].items()
            ],
            schema=[*self.__key_names[name], "dual"],
            orient="row",
            strict=False,
        )
