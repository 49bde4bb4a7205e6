import polars as pl
import pyomo.environ as pyo


def extract_optimization_results(
    model_instance: pyo.Model, var_name: str, index_names: list[str] | None = None
) -> pl.DataFrame:
    """
    Extract the values of an indexed pyomo component into a Polars DataFrame with one
    column per index dimension and one column holding the values.

    Args:
        model_instance (pyo.Model): The solved (or instantiated) model.
        var_name (str): Name of the indexed component.
        index_names (list[str], optional): Column names of the index dimensions. Defaults
            to the names of the index subsets.

    Returns:
        pl.DataFrame: The extracted values.
    """
    component = getattr(model_instance, var_name)
    if index_names is None:
        index_names = list(map(lambda x: x.name, component.index_set().subsets()))

    rows = [
        (*(key if isinstance(key, tuple) else (key,)), value)
        for key, value in component.extract_values().items()
    ]
    return pl.DataFrame(
        rows, schema=[*index_names, var_name], orient="row", strict=False
    )
