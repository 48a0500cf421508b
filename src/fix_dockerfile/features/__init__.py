"""Features derived from a trace and from the source tree."""

from fix_dockerfile.features.languages import LanguageProfile, inspect_language
from fix_dockerfile.features.packages import PackageExtractor, parse_package_listing
from fix_dockerfile.features.ports import extract_ports, records_from_port_bindings

__all__ = [
    "LanguageProfile",
    "PackageExtractor",
    "extract_ports",
    "inspect_language",
    "parse_package_listing",
    "records_from_port_bindings",
]
