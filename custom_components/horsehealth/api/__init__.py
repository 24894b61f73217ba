"""Client for the Horse Health backend REST API."""
from .client import HorseHealthApi, extract_collection

__all__ = ["HorseHealthApi", "extract_collection"]
