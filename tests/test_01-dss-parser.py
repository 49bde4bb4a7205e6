import pytest
from polars import col as c

from data_model.exceptions import ParseError
from network_data import parse_file, parse_string

SOURCE = "New Circuit.test basekv=0.4 bus1=sourcebus\n"


class DssParserTestCase:
    """Base class for parser test cases."""

    @pytest.fixture(autouse=True)
    def setup_common_data(self, test_case4_file, write_dss):
        self.case4_file = test_case4_file
        self.write_dss = write_dss


class TestCase4Network(DssParserTestCase):
    @pytest.fixture(autouse=True)
    def parse_case4(self, setup_common_data):
        self.network = parse_file(self.case4_file)

    def test_circuit_and_settings(self):
        assert self.network.name == "case4_unbalanced"
        assert self.network.settings.base_frequency == 50.0
        assert self.network.settings.voltage_bases == [0.4]
        source = self.network.voltage_source.row(0, named=True)
        assert source["bus"] == "sourcebus"
        assert source["basekv"] == 0.4
        assert source["connections"] == [1, 2, 3]

    def test_buses_have_three_phases(self):
        assert self.network.bus["bus_id"].to_list() == [
            "sourcebus",
            "primary",
            "loadbus",
            "endbus",
        ]
        assert self.network.bus["terminals"].to_list() == [[1, 2, 3]] * 4

    def test_lower_triangular_matrix_is_symmetric(self):
        linecode = self.network.linecode.row(0, named=True)
        assert linecode["name"] == "lv_cable"
        assert linecode["units"] == "km"
        assert linecode["rmatrix"] == pytest.approx(
            [0.227, 0.0593, 0.0593, 0.0593, 0.227, 0.0593, 0.0593, 0.0593, 0.227]
        )
        assert linecode["cmatrix"] == [0.0] * 9

    def test_lines_inherit_linecode(self):
        assert self.network.line.height == 3
        line = self.network.line.filter(c("name") == "line1").row(0, named=True)
        assert (line["bus1"], line["bus2"]) == ("sourcebus", "primary")
        assert line["length"] == 0.2
        assert line["units"] == "km"
        assert line["impedance_units"] == "km"
        assert line["xmatrix"][0] == pytest.approx(0.0878)

    def test_loads(self):
        assert self.network.load["name"].to_list() == [
            "load_3ph",
            "load_a",
            "load_b",
            "load_c",
        ]
        load_a = self.network.load.filter(c("name") == "load_a").row(0, named=True)
        assert load_a["connections"] == [1]
        assert load_a["kw"] == 6.0
        assert load_a["kvar"] == 2.0
        assert load_a["conn"] == "wye"


class TestDssGrammar(DssParserTestCase):
    def test_comments_and_continuation_lines(self):
        network = parse_string(
            SOURCE
            + "// line comment\n"
            + "New Line.l1 bus1=sourcebus bus2=b2 ! trailing comment\n"
            + "~ length=2\n"
            + "More units=m\n"
        )
        line = network.line.row(0, named=True)
        assert line["length"] == 2.0
        assert line["units"] == "m"

    def test_case_insensitive_commands_and_names(self):
        network = parse_string(
            "NEW CIRCUIT.Test BASEKV=0.4 BUS1=SourceBus\n"
            + "new line.L1 Bus1=SOURCEBUS Bus2=B2\n"
        )
        assert network.name == "test"
        assert network.line["name"].to_list() == ["l1"]
        assert network.bus["bus_id"].to_list() == ["sourcebus", "b2"]

    def test_object_keyword(self):
        network = parse_string(SOURCE + "New object=Line.l1 bus1=sourcebus bus2=b2\n")
        assert network.line["name"].to_list() == ["l1"]

    def test_edit_updates_element(self):
        network = parse_string(
            SOURCE
            + "New Load.ld bus1=sourcebus.1 phases=1 kw=1 kvar=0\n"
            + "Edit Load.ld kw=5\n"
        )
        assert network.load["kw"].to_list() == [5.0]

    def test_sequence_impedance(self):
        network = parse_string(
            SOURCE + "New LineCode.seq nphases=3 r1=0.1 r0=0.4 x1=0.2 x0=0.5 c1=0 c0=0\n"
        )
        rmatrix = network.linecode["rmatrix"].to_list()[0]
        assert rmatrix[0] == pytest.approx(0.2)
        assert rmatrix[1] == pytest.approx(0.1)
        xmatrix = network.linecode["xmatrix"].to_list()[0]
        assert xmatrix[4] == pytest.approx(0.3)
        assert xmatrix[5] == pytest.approx(0.1)

    def test_line_without_impedance_uses_defaults(self):
        network = parse_string(SOURCE + "New Line.l1 bus1=sourcebus bus2=b2\n")
        line = network.line.row(0, named=True)
        assert line["linecode"] is None
        assert line["rmatrix"][0] == pytest.approx((2 * 0.058 + 0.1784) / 3)
        assert line["rmatrix"][1] == pytest.approx((0.1784 - 0.058) / 3)

    def test_reactive_power_from_power_factor(self):
        network = parse_string(
            SOURCE + "New Load.ld bus1=sourcebus kw=10 pf=0.8\n"
        )
        assert network.load["kvar"].to_list()[0] == pytest.approx(7.5)

    def test_ground_terminal_is_dropped(self):
        network = parse_string(
            SOURCE + "New Load.ld phases=1 bus1=sourcebus.2.0 kw=1 kvar=0\n"
        )
        assert network.load["connections"].to_list() == [[2]]

    def test_generator_reactive_limits(self):
        network = parse_string(
            SOURCE + "New Generator.pv bus1=sourcebus kw=30 kvar=5\n"
        )
        generator = network.generator.row(0, named=True)
        assert generator["maxkvar"] == 10.0
        assert generator["minkvar"] == -10.0

    def test_skipped_classes_and_commands(self):
        network = parse_string(
            SOURCE
            + "New Loadshape.daily npts=24 interval=1\n"
            + "New Monitor.m1 element=Line.l1\n"
            + "Set voltagebases=[0.4, 0.23]\n"
            + "Calcvoltagebases\n"
            + "Solve\n"
        )
        assert network.settings.voltage_bases == [0.4, 0.23]
        assert network.line.height == 0

    def test_redirect_is_relative_to_including_file(self):
        self.write_dss("New Line.l1 bus1=sourcebus bus2=b2\n", name="lines.dss")
        master = self.write_dss(SOURCE + "Redirect lines.dss\n", name="master.dss")
        network = parse_file(master)
        assert network.line["name"].to_list() == ["l1"]

    def test_clear_resets_circuit(self):
        network = parse_string(
            SOURCE + "New Line.l1 bus1=sourcebus bus2=b2\nClear\n" + SOURCE
        )
        assert network.line.height == 0


class TestDssErrors(DssParserTestCase):
    def test_missing_file(self, tmp_path):
        with pytest.raises(ParseError, match="cannot read"):
            parse_file(tmp_path / "missing.dss")

    def test_missing_circuit(self):
        with pytest.raises(ParseError, match="no circuit"):
            parse_string("New Line.l1 bus1=a bus2=b\n")

    def test_unknown_linecode(self):
        with pytest.raises(ParseError, match="unknown linecode"):
            parse_string(SOURCE + "New Line.l1 bus1=sourcebus bus2=b2 linecode=nope\n")

    def test_unsupported_element_class(self):
        with pytest.raises(ParseError, match="transformer"):
            parse_string(SOURCE + "New Transformer.t1 buses=[sourcebus b2]\n")

    def test_positional_property(self):
        with pytest.raises(ParseError, match="positional"):
            parse_string(SOURCE + "New Line.l1 sourcebus b2\n")

    def test_malformed_number(self):
        with pytest.raises(ParseError, match="not a number"):
            parse_string(SOURCE + "New Line.l1 bus1=sourcebus bus2=b2 length=long\n")

    def test_error_names_its_stage(self):
        with pytest.raises(ParseError) as error:
            parse_string("")
        assert str(error.value).startswith("[parse]")
