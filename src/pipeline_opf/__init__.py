from pathlib import Path
from typing import Iterable
import patito as pt

from data_model import EngineeringModel, RawSolution, BusVoltageResult
from data_model.exceptions import (
    OPFError,
    InvalidConfigurationError,
    ParseError,
    ModelBuildError,
    MissingGeneratorError,
    UnknownBusPhaseError,
    SolverUnavailableError,
)
from helpers import generate_log
from network_data import parse_file
from pipeline_opf.configs import (
    OPFConfig,
    SolverOptions,
    FormulationKind,
    ProblemKind,
    default_config,
)
from pipeline_opf.data_manager import OPFModelInstance, initialize_model, build_model
from pipeline_opf.constraint_extensions import (
    ConstraintExtension,
    ConstraintRegistry,
    VoltageMagnitudeBound,
)
from pipeline_opf.model_manager import configure_solver, optimize_model
from pipeline_opf.result_manager import (
    format_results,
    report,
    network_structure_report,
)

log = generate_log(name=__name__)


class OPFPipeline:
    """
    Unbalanced OPF of a network file: parse, initialize the model, add the voltage bounds
    and the extra constraint extensions, solve and format the bus voltages.
    """

    def __init__(self, config: OPFConfig | None = None) -> None:
        self.config = config or default_config()
        self.registry = ConstraintRegistry()
        self.engineering_model: EngineeringModel
        self.model_instance: OPFModelInstance
        self.raw_solution: RawSolution
        self.result_table: pt.DataFrame[BusVoltageResult]
        self.report_text: str = ""

    def voltage_bound(self) -> VoltageMagnitudeBound:
        return VoltageMagnitudeBound(
            upper=self.config.voltage_upper_bound,
            lower=self.config.voltage_lower_bound,
        )

    def build(
        self,
        file_path: str | Path,
        extensions: Iterable[ConstraintExtension] = (),
    ) -> OPFModelInstance:
        """Parse the network and build the model with all its constraint extensions"""
        log.info(f"Building unbalanced OPF model of {file_path}")
        self.engineering_model = parse_file(file_path)
        self.model_instance, _ = initialize_model(self.engineering_model, self.config)
        self.registry.apply(self.voltage_bound(), self.model_instance)
        self.registry.apply_all(extensions, self.model_instance)
        return self.model_instance

    def solve(self) -> RawSolution:
        solver_options = configure_solver(self.config)
        self.raw_solution = optimize_model(
            self.model_instance, solver_options, solver_name=self.config.solver_name
        )
        self.result_table = format_results(self.raw_solution)
        self.report_text = report(self.raw_solution, self.result_table)
        return self.raw_solution

    def run(
        self,
        file_path: str | Path,
        extensions: Iterable[ConstraintExtension] = (),
    ) -> tuple[RawSolution, OPFModelInstance, pt.DataFrame[BusVoltageResult]]:
        self.build(file_path, extensions)
        self.solve()
        return self.raw_solution, self.model_instance, self.result_table


def solve_opf(
    file_path: str | Path,
    config: OPFConfig | None = None,
    extensions: Iterable[ConstraintExtension] = (),
) -> tuple[RawSolution, OPFModelInstance, pt.DataFrame[BusVoltageResult]]:
    """
    Solve the unbalanced AC OPF of a network file.

    Args:
        file_path (str | Path): The OpenDSS network file.
        config (OPFConfig, optional): The configuration. Defaults to `default_config()`.
        extensions (Iterable[ConstraintExtension], optional): Constraints added after the
            voltage magnitude bounds.

    Returns:
        tuple: The raw solution, the solved model instance and the bus voltage table.
    """
    return OPFPipeline(config).run(file_path, extensions)


__all__ = [
    "OPFPipeline",
    "solve_opf",
    "OPFConfig",
    "SolverOptions",
    "FormulationKind",
    "ProblemKind",
    "default_config",
    "OPFModelInstance",
    "initialize_model",
    "build_model",
    "ConstraintExtension",
    "ConstraintRegistry",
    "VoltageMagnitudeBound",
    "configure_solver",
    "optimize_model",
    "format_results",
    "report",
    "network_structure_report",
    "OPFError",
    "InvalidConfigurationError",
    "ParseError",
    "ModelBuildError",
    "MissingGeneratorError",
    "UnknownBusPhaseError",
    "SolverUnavailableError",
]
