from .scanner import NamespaceScanCoordinator, ScanReport
from .inventory import Inventory
from .resolver import Disambiguator, LocationResolver, Resolution, ResolutionStatus

__all__ = ["NamespaceScanCoordinator", "ScanReport", "Inventory", "Disambiguator", "LocationResolver", "Resolution", "ResolutionStatus"]
