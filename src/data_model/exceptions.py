class OPFError(Exception):
    """Base class of every fatal error of the OPF pipeline"""

    stage: str = "pipeline"

    def __init__(self, message: str) -> None:
        super().__init__(f"[{self.stage}] {message}")


class InvalidConfigurationError(OPFError, ValueError):
    stage = "configuration"


class ParseError(OPFError, ValueError):
    stage = "parse"


class ModelBuildError(OPFError):
    stage = "model build"


class MissingGeneratorError(ModelBuildError, KeyError):
    stage = "model build"

    def __str__(self) -> str:
        # KeyError would otherwise quote the message
        return str(self.args[0])


class UnknownBusPhaseError(OPFError, KeyError):
    stage = "constraint"

    def __str__(self) -> str:
        return str(self.args[0])


class SolverUnavailableError(OPFError, RuntimeError):
    stage = "solve"
