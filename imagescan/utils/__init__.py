"""Utility helpers for the scanner."""

from .fileio import read_yaml_file, read_text_file
from .properties import PropertyMap, get_list, image_list, load_properties

__all__ = [
    "read_yaml_file",
    "read_text_file",
    "PropertyMap",
    "get_list",
    "image_list",
    "load_properties",
]
