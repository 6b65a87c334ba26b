"""
Source adapters, one module per provider.

Each adapter turns a SearchQuery into canonical records and reports
failure with SourceUnavailableError (the local store adapter excepted).
"""

from .aact import AactAdapter
from .arxiv import ArxivAdapter
from .base import BaseAPIClient, SourceAdapter
from .clinical_trials import ClinicalTrialsAdapter
from .fallback import FallbackAdapter
from .internal import InternalStoreAdapter
from .orcid import OrcidAdapter
from .pubmed import PubMedAdapter
from .scholar import GoogleScholarAdapter

__all__ = [
    "AactAdapter",
    "ArxivAdapter",
    "BaseAPIClient",
    "ClinicalTrialsAdapter",
    "FallbackAdapter",
    "GoogleScholarAdapter",
    "InternalStoreAdapter",
    "OrcidAdapter",
    "PubMedAdapter",
    "SourceAdapter",
]
