from .common import ErrorResponse, OkResponse
from .place import AutocompleteResponse, PhotoUrlResponse, Place, Prediction
from .point import PointMetadata

__all__ = [
    "AutocompleteResponse",
    "ErrorResponse",
    "OkResponse",
    "PhotoUrlResponse",
    "Place",
    "PointMetadata",
    "Prediction",
]
