"""
Auxiliary functions
"""

import logging
import coloredlogs
import patito as pt
import polars as pl


def generate_log(name: str, log_level: str = "info") -> logging.Logger:
    """
    Generate a logger with the specified name and log level.

    Args:
        name (str): The name of the logger.
        log_level (str, optional): The log level. Defaults to "info".

    Returns:
        logging.Logger: The generated logger.
    """
    log = logging.getLogger(name)
    coloredlogs.install(level=log_level)
    return log


def pl_to_dict(df: pl.DataFrame) -> dict:
    """
    Convert a Polars DataFrame with two columns into a dictionary. It is assumed that the
    first column contains the keys and the second column contains the values. The keys must
    be unique but Null values will be filtered.

    Args:
        df (pl.DataFrame): Polars DataFrame with two columns.

    Returns:
        dict: Dictionary representation of the DataFrame.

    Raises:
        ValueError: If the DataFrame does not have exactly two columns or if the keys are not unique.
    """

    if df.shape[1] != 2:
        raise ValueError("DataFrame is not composed of two columns")

    columns_name = df.columns[0]
    df = df.drop_nulls(columns_name)
    if df[columns_name].is_duplicated().sum() != 0:
        raise ValueError("Key values are not unique")
    return dict(df.rows())


def pl_to_dict_with_tuple(df: pl.DataFrame) -> dict:
    """
    Convert a Polars DataFrame into a dictionary where every column but the last one
    builds the tuple key and the last column contains the values.

    Args:
        df (pl.DataFrame): Polars DataFrame with at least two columns.

    Returns:
        dict: Dictionary representation of the DataFrame with tuples as keys.

    Raises:
        ValueError: If the DataFrame has less than two columns.

    Example:
    >>> import polars as pl
    >>> df = pl.DataFrame({"bus": [1, 1], "phase": [1, 2], "value": [10, 20]})
    >>> pl_to_dict_with_tuple(df)
    {(1, 1): 10, (1, 2): 20}
    """
    if df.shape[1] < 2:
        raise ValueError("DataFrame must have at least two columns")
    return dict(map(lambda row: (tuple(row[:-1]), row[-1]), df.rows()))


def build_pt_table(model: type[pt.Model], rows: list[dict]) -> pt.DataFrame:
    """
    Build a validated patito table from a list of records. Missing optional columns are
    filled with the model defaults and every column is cast to the model dtype.

    Args:
        model (type[pt.Model]): The patito model describing the table.
        rows (list[dict]): One dictionary per row.

    Returns:
        pt.DataFrame: The validated table.
    """
    if not rows:
        return model.DataFrame(schema=model.columns).cast()
    table_pl: pl.DataFrame = pl.DataFrame(rows, infer_schema_length=None)
    old_table: pl.DataFrame = model.DataFrame(schema=model.columns).cast()
    col_list: list[str] = [col for col in old_table.columns if col in table_pl.columns]
    table_pt: pt.DataFrame = (
        pt.DataFrame(
            pl.concat([old_table, table_pl.select(col_list)], how="diagonal_relaxed")
        )
        .set_model(model)
        .fill_null(strategy="defaults")
        .cast(strict=True)
    )
    table_pt.validate()
    return table_pt
