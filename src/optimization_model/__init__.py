from pyomo import environ as pyo
from pyomo.environ import Suffix

from optimization_model.sets import model_sets
from optimization_model.parameters import model_parameters
from optimization_model.variables import model_variables
from optimization_model.constraints import model_constraints


def generate_unbalanced_opf_model() -> pyo.AbstractModel:
    """Builds the unbalanced AC polar OPF model."""
    opf_model: pyo.AbstractModel = pyo.AbstractModel()  # type: ignore
    opf_model = model_sets(opf_model)
    opf_model = model_parameters(opf_model)
    opf_model = model_variables(opf_model)
    opf_model = model_constraints(opf_model)
    opf_model.dual = Suffix(direction=Suffix.IMPORT)
    return opf_model
