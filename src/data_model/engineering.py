from dataclasses import dataclass, field
from typing import List, Optional
from typing_extensions import Literal
import polars as pl
import patito as pt

LENGTH_UNITS = Literal["none", "mi", "kft", "km", "m", "ft", "in", "cm", "mm"]
LOAD_CONNECTIONS = Literal["wye", "delta"]


def literal_constraint(field: pl.Expr, values) -> pl.Expr:
    return field.is_in(list(values.__args__)).alias("literal_constraint")


class BusData(pt.Model):
    bus_id: str = pt.Field(dtype=pl.Utf8, unique=True)
    terminals: List[int] = pt.Field(dtype=pl.List(pl.Int32))


class LineCodeData(pt.Model):
    name: str = pt.Field(dtype=pl.Utf8, unique=True)
    nphases: int = pt.Field(dtype=pl.Int32, default=3)
    units: LENGTH_UNITS = pt.Field(
        dtype=pl.Utf8,
        default="none",
        constraints=literal_constraint(pt.field, LENGTH_UNITS),
    )
    # Row-major flattened matrices, per unit length (ohm and nF)
    rmatrix: List[float] = pt.Field(dtype=pl.List(pl.Float64))
    xmatrix: List[float] = pt.Field(dtype=pl.List(pl.Float64))
    cmatrix: List[float] = pt.Field(dtype=pl.List(pl.Float64))


class LineData(pt.Model):
    name: str = pt.Field(dtype=pl.Utf8, unique=True)
    bus1: str = pt.Field(dtype=pl.Utf8)
    bus2: str = pt.Field(dtype=pl.Utf8)
    f_connections: List[int] = pt.Field(dtype=pl.List(pl.Int32))
    t_connections: List[int] = pt.Field(dtype=pl.List(pl.Int32))
    linecode: Optional[str] = pt.Field(dtype=pl.Utf8, default=None)
    length: float = pt.Field(dtype=pl.Float64, default=1.0)
    units: LENGTH_UNITS = pt.Field(
        dtype=pl.Utf8,
        default="none",
        constraints=literal_constraint(pt.field, LENGTH_UNITS),
    )
    impedance_units: LENGTH_UNITS = pt.Field(
        dtype=pl.Utf8,
        default="none",
        constraints=literal_constraint(pt.field, LENGTH_UNITS),
    )
    rmatrix: List[float] = pt.Field(dtype=pl.List(pl.Float64))
    xmatrix: List[float] = pt.Field(dtype=pl.List(pl.Float64))
    cmatrix: List[float] = pt.Field(dtype=pl.List(pl.Float64))


class LoadData(pt.Model):
    name: str = pt.Field(dtype=pl.Utf8, unique=True)
    bus: str = pt.Field(dtype=pl.Utf8)
    connections: List[int] = pt.Field(dtype=pl.List(pl.Int32))
    kw: float = pt.Field(dtype=pl.Float64, default=10.0)
    kvar: float = pt.Field(dtype=pl.Float64, default=0.0)
    load_model: int = pt.Field(dtype=pl.Int32, default=1)
    conn: LOAD_CONNECTIONS = pt.Field(
        dtype=pl.Utf8,
        default="wye",
        constraints=literal_constraint(pt.field, LOAD_CONNECTIONS),
    )


class GeneratorData(pt.Model):
    name: str = pt.Field(dtype=pl.Utf8, unique=True)
    bus: str = pt.Field(dtype=pl.Utf8)
    connections: List[int] = pt.Field(dtype=pl.List(pl.Int32))
    kw: float = pt.Field(dtype=pl.Float64, default=1000.0)
    kvar: float = pt.Field(dtype=pl.Float64, default=0.0)
    maxkvar: float = pt.Field(dtype=pl.Float64)
    minkvar: float = pt.Field(dtype=pl.Float64)


class VoltageSourceData(pt.Model):
    name: str = pt.Field(dtype=pl.Utf8, unique=True)
    bus: str = pt.Field(dtype=pl.Utf8)
    connections: List[int] = pt.Field(dtype=pl.List(pl.Int32))
    basekv: float = pt.Field(dtype=pl.Float64, default=115.0)
    pu: float = pt.Field(dtype=pl.Float64, default=1.0)
    angle: float = pt.Field(dtype=pl.Float64, default=0.0)


@dataclass
class EngineeringSettings:
    """Base and scaling settings, powers in kW and voltages in kV by default"""

    sbase_default: float = 1.0
    power_scale_factor: float = 1000.0
    voltage_scale_factor: float = 1000.0
    base_frequency: float = 60.0
    voltage_bases: List[float] = field(default_factory=list)


@dataclass
class EngineeringModel:
    name: str = ""
    settings: EngineeringSettings = field(default_factory=EngineeringSettings)
    bus: pt.DataFrame[BusData] = field(
        default_factory=lambda: BusData.DataFrame(schema=BusData.columns).cast()
    )
    linecode: pt.DataFrame[LineCodeData] = field(
        default_factory=lambda: LineCodeData.DataFrame(
            schema=LineCodeData.columns
        ).cast()
    )
    line: pt.DataFrame[LineData] = field(
        default_factory=lambda: LineData.DataFrame(schema=LineData.columns).cast()
    )
    load: pt.DataFrame[LoadData] = field(
        default_factory=lambda: LoadData.DataFrame(schema=LoadData.columns).cast()
    )
    generator: pt.DataFrame[GeneratorData] = field(
        default_factory=lambda: GeneratorData.DataFrame(
            schema=GeneratorData.columns
        ).cast()
    )
    voltage_source: pt.DataFrame[VoltageSourceData] = field(
        default_factory=lambda: VoltageSourceData.DataFrame(
            schema=VoltageSourceData.columns
        ).cast()
    )
