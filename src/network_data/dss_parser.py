"""
Parser of the OpenDSS subset used to describe low-voltage unbalanced networks.

Supported commands are ``clear``, ``new``, ``edit``, ``set`` (``voltagebases`` and
``defaultbasefrequency``) and ``redirect``/``compile``. Element classes are ``circuit``,
``vsource``, ``linecode``, ``line``, ``load`` and ``generator``. Non-electrical classes such as
``loadshape`` or ``monitor`` are skipped, any other class is rejected.
"""

import math
import re
from pathlib import Path
import numpy as np

from data_model import (
    EngineeringModel,
    EngineeringSettings,
    BusData,
    LineCodeData,
    LineData,
    LoadData,
    GeneratorData,
    VoltageSourceData,
)
from data_model.exceptions import ParseError
from helpers import generate_log, build_pt_table

log = generate_log(name=__name__)

SUPPORTED_CLASSES = {"circuit", "vsource", "linecode", "line", "load", "generator"}
IGNORED_CLASSES = {
    "loadshape",
    "monitor",
    "energymeter",
    "xycurve",
    "growthshape",
    "tshape",
    "spectrum",
}
IGNORED_COMMANDS = {"calcvoltagebases", "calcv", "solve", "buscoords", "show", "export"}
LENGTH_UNITS = {"none", "mi", "kft", "km", "m", "ft", "in", "cm", "mm"}

# OpenDSS defaults, ohm and nF per unit length
DEFAULT_SEQUENCE_IMPEDANCE = {
    "r1": 0.058,
    "x1": 0.1206,
    "r0": 0.1784,
    "x0": 0.4047,
    "c1": 3.4,
    "c0": 1.6,
}
IMPEDANCE_PROPERTIES = {"r1", "x1", "r0", "x0", "c1", "c0", "rmatrix", "xmatrix", "cmatrix"}

_PROPERTY_PATTERN = re.compile(
    r"""([^\s=]+)\s*=\s*(\[[^\]]*\]|\([^)]*\)|\{[^}]*\}|"[^"]*"|'[^']*'|[^\s]+)"""
)
_COMMENT_PATTERN = re.compile(r"!|//")


def parse_file(file_path: str | Path) -> EngineeringModel:
    """
    Parse an OpenDSS file into an engineering model.

    Args:
        file_path (str | Path): Path of the master file.

    Returns:
        EngineeringModel: The parsed network.

    Raises:
        ParseError: If the file cannot be read or does not follow the supported grammar.
    """
    parser = DssParser()
    parser.parse_file(Path(file_path))
    return parser.build()


def parse_string(text: str, source: str = "<string>") -> EngineeringModel:
    """Parse OpenDSS commands given as text, redirects are resolved from the working directory"""
    parser = DssParser()
    parser.parse_lines(text.splitlines(), source=source, base_dir=Path.cwd())
    return parser.build()


def _strip_value(value: str) -> str:
    return value.strip().strip("[](){}\"'").strip()


def _to_float(value: str, context: str) -> float:
    try:
        return float(_strip_value(value))
    except ValueError:
        raise ParseError(f"{context}: '{value}' is not a number")


def _to_int(value: str, context: str) -> int:
    number = _to_float(value, context)
    if not number.is_integer():
        raise ParseError(f"{context}: '{value}' is not an integer")
    return int(number)


def _to_float_list(value: str, context: str) -> list[float]:
    items = [item for item in re.split(r"[\s,|]+", _strip_value(value)) if item]
    return [_to_float(item, context) for item in items]


def _to_matrix(value: str, size: int, context: str) -> np.ndarray:
    """
    Parse a full, lower-triangular (rows separated by ``|``) or flattened matrix.
    """
    rows = [
        [_to_float(item, context) for item in re.split(r"[\s,]+", row.strip()) if item]
        for row in _strip_value(value).split("|")
    ]
    rows = [row for row in rows if row]
    matrix = np.zeros((size, size))
    if [len(row) for row in rows] == list(range(1, size + 1)):
        for i, row in enumerate(rows):
            for j, item in enumerate(row):
                matrix[i, j] = item
                matrix[j, i] = item
    elif len(rows) == size and all(len(row) == size for row in rows):
        matrix[:, :] = rows
    elif len(rows) == 1 and len(rows[0]) == size * size:
        matrix[:, :] = np.reshape(rows[0], (size, size))
    else:
        raise ParseError(f"{context}: matrix '{value}' is not a {size}x{size} matrix")
    return matrix


def _sequence_to_matrix(z1: float, z0: float, size: int) -> np.ndarray:
    if size == 1:
        return np.array([[z1]])
    diagonal = (2 * z1 + z0) / 3
    off_diagonal = (z0 - z1) / 3
    return np.full((size, size), off_diagonal) + np.eye(size) * (diagonal - off_diagonal)


def _parse_bus(value: str, context: str) -> tuple[str, list[int]]:
    name, *terminals = _strip_value(value).lower().split(".")
    if not name:
        raise ParseError(f"{context}: empty bus name in '{value}'")
    try:
        return name, [int(terminal) for terminal in terminals]
    except ValueError:
        raise ParseError(f"{context}: invalid terminals in bus '{value}'")


def _parse_units(value: str, context: str) -> str:
    units = _strip_value(value).lower()
    if units not in LENGTH_UNITS:
        raise ParseError(f"{context}: unknown length units '{value}'")
    return units


class DssParser:
    """Accumulates OpenDSS commands and materializes them into an engineering model"""

    def __init__(self) -> None:
        self.clear()

    def clear(self) -> None:
        self.circuit_name: str | None = None
        self.settings = EngineeringSettings()
        self.base_frequency: float | None = None
        # (class, name) -> raw properties, in definition order
        self.elements: dict[tuple[str, str], dict[str, str]] = {}

    def parse_file(self, file_path: Path) -> None:
        try:
            lines = file_path.read_text().splitlines()
        except OSError as e:
            raise ParseError(f"cannot read network file '{file_path}': {e}") from e
        log.info(f"Parsing network file {file_path}")
        self.parse_lines(lines, source=str(file_path), base_dir=file_path.parent)

    def parse_lines(self, lines: list[str], source: str, base_dir: Path) -> None:
        command: str | None = None
        command_line: int = 0
        for line_number, raw_line in enumerate(lines, start=1):
            line = _COMMENT_PATTERN.split(raw_line, maxsplit=1)[0].strip()
            if not line:
                continue
            first_word = line.split(maxsplit=1)[0].lower()
            if line.startswith("~") or first_word == "more":
                if command is None:
                    raise ParseError(
                        f"{source}:{line_number}: continuation line without command"
                    )
                remainder = line[1:] if line.startswith("~") else line[len("more") :]
                command = f"{command} {remainder}"
                continue
            if command is not None:
                self.execute(command, f"{source}:{command_line}", base_dir)
            command, command_line = line, line_number
        if command is not None:
            self.execute(command, f"{source}:{command_line}", base_dir)

    def execute(self, command: str, context: str, base_dir: Path) -> None:
        verb, _, arguments = command.partition(" ")
        verb = verb.lower()
        if verb == "clear":
            self.clear()
        elif verb in ("new", "edit"):
            self.__define_element(arguments, context, edit=verb == "edit")
        elif verb == "set":
            self.__set_options(arguments, context)
        elif verb in ("redirect", "compile"):
            target = base_dir / _strip_value(arguments)
            self.parse_file(target)
        elif verb in IGNORED_COMMANDS:
            log.debug(f"{context}: command '{verb}' ignored")
        else:
            log.warning(f"{context}: unsupported command '{verb}' skipped")

    @staticmethod
    def parse_properties(text: str, context: str) -> dict[str, str]:
        properties: dict[str, str] = {}
        position = 0
        for match in _PROPERTY_PATTERN.finditer(text):
            if text[position : match.start()].strip():
                raise ParseError(
                    f"{context}: positional property '{text[position:match.start()].strip()}' is not supported"
                )
            properties[match.group(1).lower()] = match.group(2)
            position = match.end()
        if text[position:].strip():
            raise ParseError(
                f"{context}: positional property '{text[position:].strip()}' is not supported"
            )
        return properties

    def __define_element(self, arguments: str, context: str, edit: bool) -> None:
        element, _, remainder = arguments.strip().partition(" ")
        if element.lower().startswith("object="):
            element = element[len("object=") :]
        element_class, _, element_name = element.partition(".")
        element_class, element_name = element_class.lower(), element_name.lower()
        if not element_name:
            raise ParseError(f"{context}: element '{element}' has no name")
        properties = self.parse_properties(remainder, context)

        if element_class in IGNORED_CLASSES:
            log.debug(f"{context}: element '{element}' ignored")
            return
        if element_class not in SUPPORTED_CLASSES:
            raise ParseError(f"{context}: element class '{element_class}' is not supported")

        if element_class == "circuit":
            self.circuit_name = element_name
            if "basefreq" in properties:
                self.base_frequency = _to_float(properties["basefreq"], context)
            element_class, element_name = "vsource", "source"

        key = (element_class, element_name)
        if edit:
            if key not in self.elements:
                raise ParseError(f"{context}: cannot edit unknown element '{element}'")
            self.elements[key].update(properties)
        else:
            if key in self.elements:
                log.warning(f"{context}: element '{element}' redefined")
            self.elements[key] = properties | {"__context__": context}

    def __set_options(self, arguments: str, context: str) -> None:
        for option, value in self.parse_properties(arguments, context).items():
            if option == "voltagebases":
                self.settings.voltage_bases = _to_float_list(value, context)
            elif option == "defaultbasefrequency":
                self.settings.base_frequency = _to_float(value, context)
            else:
                log.debug(f"{context}: option '{option}' ignored")

    def __elements(self, element_class: str) -> list[tuple[str, dict[str, str]]]:
        return [
            (name, properties)
            for (cls, name), properties in self.elements.items()
            if cls == element_class
        ]

    def build(self) -> EngineeringModel:
        if self.circuit_name is None:
            raise ParseError("no circuit defined, a 'New Circuit' command is required")
        if self.base_frequency is not None:
            self.settings.base_frequency = self.base_frequency

        self.__buses: dict[str, list[int]] = {}
        voltage_source = [
            self.__build_voltage_source(name, properties)
            for name, properties in self.__elements("vsource")
        ]
        linecodes = {
            name: self.__build_linecode(name, properties)
            for name, properties in self.__elements("linecode")
        }
        line = [
            self.__build_line(name, properties, linecodes)
            for name, properties in self.__elements("line")
        ]
        load = [
            self.__build_load(name, properties)
            for name, properties in self.__elements("load")
        ]
        generator = [
            self.__build_generator(name, properties)
            for name, properties in self.__elements("generator")
        ]
        bus = [
            {"bus_id": bus_id, "terminals": sorted(terminals)}
            for bus_id, terminals in self.__buses.items()
        ]
        log.info(
            f"Parsed circuit '{self.circuit_name}': {len(bus)} buses, {len(line)} lines, "
            + f"{len(load)} loads, {len(generator)} generators"
        )
        return EngineeringModel(
            name=self.circuit_name,
            settings=self.settings,
            bus=build_pt_table(BusData, bus),
            linecode=build_pt_table(LineCodeData, list(linecodes.values())),
            line=build_pt_table(LineData, line),
            load=build_pt_table(LoadData, load),
            generator=build_pt_table(GeneratorData, generator),
            voltage_source=build_pt_table(VoltageSourceData, voltage_source),
        )

    def __connect(
        self, value: str, nphases: int, context: str, drop_ground: bool = True
    ) -> tuple[str, list[int]]:
        bus_id, terminals = _parse_bus(value, context)
        if not terminals:
            terminals = list(range(1, nphases + 1))
        if drop_ground:
            terminals = [terminal for terminal in terminals if terminal != 0]
        known_terminals = self.__buses.setdefault(bus_id, [])
        known_terminals.extend(t for t in terminals if t not in known_terminals)
        return bus_id, terminals

    def __build_voltage_source(self, name: str, properties: dict[str, str]) -> dict:
        context = properties["__context__"]
        nphases = _to_int(properties.get("phases", "3"), context)
        bus, connections = self.__connect(
            properties.get("bus1", "sourcebus"), nphases, context
        )
        return {
            "name": name,
            "bus": bus,
            "connections": connections,
            "basekv": _to_float(properties.get("basekv", "115"), context),
            "pu": _to_float(properties.get("pu", "1.0"), context),
            "angle": _to_float(properties.get("angle", "0.0"), context),
        }

    @staticmethod
    def __impedance_matrices(
        properties: dict[str, str], nphases: int, context: str
    ) -> dict[str, list[float]]:
        matrices: dict[str, np.ndarray] = {}
        for prefix in ("r", "x", "c"):
            if f"{prefix}matrix" in properties:
                matrices[prefix] = _to_matrix(
                    properties[f"{prefix}matrix"], nphases, context
                )
            else:
                matrices[prefix] = _sequence_to_matrix(
                    _to_float(
                        properties.get(
                            f"{prefix}1", str(DEFAULT_SEQUENCE_IMPEDANCE[f"{prefix}1"])
                        ),
                        context,
                    ),
                    _to_float(
                        properties.get(
                            f"{prefix}0", str(DEFAULT_SEQUENCE_IMPEDANCE[f"{prefix}0"])
                        ),
                        context,
                    ),
                    nphases,
                )
        return {
            f"{prefix}matrix": matrix.flatten().tolist()
            for prefix, matrix in matrices.items()
        }

    def __build_linecode(self, name: str, properties: dict[str, str]) -> dict:
        context = properties["__context__"]
        nphases = _to_int(properties.get("nphases", "3"), context)
        return {
            "name": name,
            "nphases": nphases,
            "units": _parse_units(properties.get("units", "none"), context),
            **self.__impedance_matrices(properties, nphases, context),
        }

    def __build_line(
        self, name: str, properties: dict[str, str], linecodes: dict[str, dict]
    ) -> dict:
        context = properties["__context__"]
        linecode_name = (
            _strip_value(properties["linecode"]).lower()
            if "linecode" in properties
            else None
        )
        if linecode_name is not None and linecode_name not in linecodes:
            raise ParseError(f"{context}: unknown linecode '{linecode_name}'")
        linecode = linecodes.get(linecode_name) if linecode_name else None

        default_phases = str(linecode["nphases"]) if linecode else "3"
        nphases = _to_int(properties.get("phases", default_phases), context)
        if "bus1" not in properties or "bus2" not in properties:
            raise ParseError(f"{context}: line '{name}' needs bus1 and bus2")
        bus1, f_connections = self.__connect(properties["bus1"], nphases, context)
        bus2, t_connections = self.__connect(properties["bus2"], nphases, context)
        units = _parse_units(properties.get("units", "none"), context)

        if IMPEDANCE_PROPERTIES.intersection(properties) or linecode is None:
            impedance = self.__impedance_matrices(properties, nphases, context)
            impedance_units = units
        else:
            impedance = {
                key: linecode[key] for key in ("rmatrix", "xmatrix", "cmatrix")
            }
            impedance_units = linecode["units"]

        return {
            "name": name,
            "bus1": bus1,
            "bus2": bus2,
            "f_connections": f_connections,
            "t_connections": t_connections,
            "linecode": linecode_name,
            "length": _to_float(properties.get("length", "1.0"), context),
            "units": units,
            "impedance_units": impedance_units,
            **impedance,
        }

    @staticmethod
    def __reactive_power(properties: dict[str, str], kw: float, context: str) -> float:
        if "kvar" in properties:
            return _to_float(properties["kvar"], context)
        pf = _to_float(properties.get("pf", "0.88"), context)
        if pf == 0 or abs(pf) > 1:
            raise ParseError(f"{context}: invalid power factor {pf}")
        return math.copysign(kw * math.tan(math.acos(abs(pf))), pf)

    def __build_load(self, name: str, properties: dict[str, str]) -> dict:
        context = properties["__context__"]
        nphases = _to_int(properties.get("phases", "3"), context)
        if "bus1" not in properties:
            raise ParseError(f"{context}: load '{name}' needs bus1")
        bus, connections = self.__connect(properties["bus1"], nphases, context)
        kw = _to_float(properties.get("kw", "10"), context)
        conn = _strip_value(properties.get("conn", "wye")).lower()
        return {
            "name": name,
            "bus": bus,
            "connections": connections,
            "kw": kw,
            "kvar": self.__reactive_power(properties, kw, context),
            "load_model": _to_int(properties.get("model", "1"), context),
            "conn": "delta" if conn in ("delta", "d", "ll") else "wye",
        }

    def __build_generator(self, name: str, properties: dict[str, str]) -> dict:
        context = properties["__context__"]
        nphases = _to_int(properties.get("phases", "3"), context)
        if "bus1" not in properties:
            raise ParseError(f"{context}: generator '{name}' needs bus1")
        bus, connections = self.__connect(properties["bus1"], nphases, context)
        kw = _to_float(properties.get("kw", "1000"), context)
        kvar = self.__reactive_power(properties, kw, context)
        maxkvar = _to_float(properties.get("maxkvar", str(2 * abs(kvar))), context)
        minkvar = _to_float(properties.get("minkvar", str(-maxkvar)), context)
        return {
            "name": name,
            "bus": bus,
            "connections": connections,
            "kw": kw,
            "kvar": kvar,
            "maxkvar": maxkvar,
            "minkvar": minkvar,
        }
