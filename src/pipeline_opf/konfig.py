from pathlib import Path
from dynaconf import Dynaconf

from pipeline_opf.configs import OPFConfig
from helpers import generate_log

log = generate_log(name=__name__)

settings = Dynaconf(
    envvar_prefix="OPF",
    settings_files=["settings.toml", ".secrets.toml"],
    root_path=Path(__file__).parent,
)


def load_opf_config(settings_file: str | Path | None = None, **overrides) -> OPFConfig:
    """
    Build an OPF configuration from the `[opf]` section of the settings.

    Args:
        settings_file (str | Path, optional): Settings file replacing the packaged one.
        **overrides: Configuration fields taking precedence over the settings.

    Returns:
        OPFConfig: The configuration.
    """
    if settings_file is None:
        source = settings
    else:
        source = Dynaconf(envvar_prefix="OPF", settings_files=[str(settings_file)])
    section = {key.lower(): value for key, value in dict(source.get("opf", {})).items()}

    unknown = set(section).difference(OPFConfig.field_names())
    if unknown:
        log.warning(f"Unknown OPF settings ignored: {sorted(unknown)}")
    values = {
        key: value for key, value in section.items() if key in OPFConfig.field_names()
    }
    values.update({key: value for key, value in overrides.items() if value is not None})
    if "generator_cost" in values:
        values["generator_cost"] = tuple(float(x) for x in values["generator_cost"])
    if "cost_generator_id" in values:
        values["cost_generator_id"] = str(values["cost_generator_id"])
    return OPFConfig(**values)
