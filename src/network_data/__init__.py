from network_data.dss_parser import parse_file, parse_string
from network_data.transformation import transform_data_model

__all__ = ["parse_file", "parse_string", "transform_data_model"]
