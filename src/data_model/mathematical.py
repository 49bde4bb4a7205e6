from dataclasses import dataclass, field
from typing import List, Optional
import polars as pl
import patito as pt

REFERENCE_BUS_TYPE: int = 3
PQ_BUS_TYPE: int = 1


class MathBusData(pt.Model):
    bus_i: int = pt.Field(dtype=pl.Int32, unique=True)
    name: str = pt.Field(dtype=pl.Utf8, unique=True)
    terminals: List[int] = pt.Field(dtype=pl.List(pl.Int32))
    vbase_kv: float = pt.Field(dtype=pl.Float64)
    bus_type: int = pt.Field(dtype=pl.Int32, default=PQ_BUS_TYPE)


class MathBranchData(pt.Model):
    branch_i: int = pt.Field(dtype=pl.Int32, unique=True)
    name: str = pt.Field(dtype=pl.Utf8, unique=True)
    f_bus: int = pt.Field(dtype=pl.Int32)
    t_bus: int = pt.Field(dtype=pl.Int32)
    f_connections: List[int] = pt.Field(dtype=pl.List(pl.Int32))
    t_connections: List[int] = pt.Field(dtype=pl.List(pl.Int32))
    # Row-major flattened matrices in per unit
    g_series: List[float] = pt.Field(dtype=pl.List(pl.Float64))
    b_series: List[float] = pt.Field(dtype=pl.List(pl.Float64))
    b_fr: List[float] = pt.Field(dtype=pl.List(pl.Float64))
    b_to: List[float] = pt.Field(dtype=pl.List(pl.Float64))


class MathLoadData(pt.Model):
    load_i: str = pt.Field(dtype=pl.Utf8, unique=True)
    name: str = pt.Field(dtype=pl.Utf8, unique=True)
    load_bus: int = pt.Field(dtype=pl.Int32)
    connections: List[int] = pt.Field(dtype=pl.List(pl.Int32))
    pd: List[float] = pt.Field(dtype=pl.List(pl.Float64))
    qd: List[float] = pt.Field(dtype=pl.List(pl.Float64))


class MathGenData(pt.Model):
    gen_id: str = pt.Field(dtype=pl.Utf8, unique=True)
    name: str = pt.Field(dtype=pl.Utf8)
    source_id: str = pt.Field(dtype=pl.Utf8, unique=True)
    gen_bus: int = pt.Field(dtype=pl.Int32)
    connections: List[int] = pt.Field(dtype=pl.List(pl.Int32))
    pg_min: Optional[List[float]] = pt.Field(dtype=pl.List(pl.Float64), default=None)
    pg_max: Optional[List[float]] = pt.Field(dtype=pl.List(pl.Float64), default=None)
    qg_min: Optional[List[float]] = pt.Field(dtype=pl.List(pl.Float64), default=None)
    qg_max: Optional[List[float]] = pt.Field(dtype=pl.List(pl.Float64), default=None)
    vg: Optional[List[float]] = pt.Field(dtype=pl.List(pl.Float64), default=None)
    va_ref: Optional[List[float]] = pt.Field(dtype=pl.List(pl.Float64), default=None)
    cost: List[float] = pt.Field(dtype=pl.List(pl.Float64))


class YBusData(pt.Model):
    f_bus: int = pt.Field(dtype=pl.Int32)
    f_phase: int = pt.Field(dtype=pl.Int32)
    t_bus: int = pt.Field(dtype=pl.Int32)
    t_phase: int = pt.Field(dtype=pl.Int32)
    g: float = pt.Field(dtype=pl.Float64)
    b: float = pt.Field(dtype=pl.Float64)


@dataclass
class MathModel:
    name: str = ""
    sbase_va: float = 1000.0
    power_scale_factor: float = 1000.0
    base_frequency: float = 60.0
    per_unit: bool = True
    bus: pt.DataFrame[MathBusData] = field(
        default_factory=lambda: MathBusData.DataFrame(
            schema=MathBusData.columns
        ).cast()
    )
    branch: pt.DataFrame[MathBranchData] = field(
        default_factory=lambda: MathBranchData.DataFrame(
            schema=MathBranchData.columns
        ).cast()
    )
    load: pt.DataFrame[MathLoadData] = field(
        default_factory=lambda: MathLoadData.DataFrame(
            schema=MathLoadData.columns
        ).cast()
    )
    gen: pt.DataFrame[MathGenData] = field(
        default_factory=lambda: MathGenData.DataFrame(
            schema=MathGenData.columns
        ).cast()
    )
    ybus: pt.DataFrame[YBusData] = field(
        default_factory=lambda: YBusData.DataFrame(schema=YBusData.columns).cast()
    )

    @property
    def bus_terminals(self) -> dict[int, list[int]]:
        return dict(self.bus.select("bus_i", "terminals").rows())
