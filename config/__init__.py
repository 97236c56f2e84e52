"""
VCF DocStore Configuration Module

Data model constants and import settings.
"""

__version__ = "0.1.0"

from .constants import (
    DATAMODEL_VERSION,
    APPLICATION_NAME,
    METADATA_COLLECTION,
    REF_OVERRIDE_FIELD,
)
from .import_config import (
    ImportOptions,
    load_config,
    options_from_config,
)

__all__ = [
    '__version__',
    'DATAMODEL_VERSION',
    'APPLICATION_NAME',
    'METADATA_COLLECTION',
    'REF_OVERRIDE_FIELD',
    'ImportOptions',
    'load_config',
    'options_from_config',
]
