from data_model.engineering import (
    EngineeringModel,
    EngineeringSettings,
    BusData,
    LineCodeData,
    LineData,
    LoadData,
    GeneratorData,
    VoltageSourceData,
)
from data_model.mathematical import (
    MathModel,
    MathBusData,
    MathBranchData,
    MathLoadData,
    MathGenData,
    YBusData,
    REFERENCE_BUS_TYPE,
)
from data_model.solution import (
    RawSolution,
    TerminationStatus,
    BusVoltageResult,
    CONVERGED_STATUSES,
    PHASE_LABELS,
)

__all__ = [
    "EngineeringModel",
    "EngineeringSettings",
    "BusData",
    "LineCodeData",
    "LineData",
    "LoadData",
    "GeneratorData",
    "VoltageSourceData",
    "MathModel",
    "MathBusData",
    "MathBranchData",
    "MathLoadData",
    "MathGenData",
    "YBusData",
    "REFERENCE_BUS_TYPE",
    "RawSolution",
    "TerminationStatus",
    "BusVoltageResult",
    "CONVERGED_STATUSES",
    "PHASE_LABELS",
]
