# %%
import os

os.chdir(os.getcwd().replace("/src", ""))
# %% import libraries
from pipeline_opf import OPFConfig, OPFPipeline, network_structure_report

# %% set parameters
config = OPFConfig(
    voltage_upper_bound=1.10,
    voltage_lower_bound=0.94,
    solver_verbosity=0,
    validate_bounds=True,
)
pipeline = OPFPipeline(config=config)

# %% build and solve the model
raw_solution, model_instance, result_table = pipeline.run("data/case4_unbalanced.dss")

# %% inspect the results
print(pipeline.report_text)
print(network_structure_report(raw_solution))
print(pipeline.registry.duals("voltage_magnitude_bound", model_instance))
