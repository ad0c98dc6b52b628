"""Display discovery and capability detection."""
from .capabilities import Capabilities, CapabilityOverrides, infer_capabilities
from .catalog import DisplayCatalogError, Output, detect_outputs

__all__ = [
    "Capabilities",
    "CapabilityOverrides",
    "DisplayCatalogError",
    "Output",
    "detect_outputs",
    "infer_capabilities",
]
