"""
Curalink Search - federated search over clinical trials, publications and researchers.

Usage:
    from curalink_search.api.server import create_api_server

    app = create_api_server()

Sources:
    - Local store (the application's own records)
    - ClinicalTrials.gov, with AACT as fallback
    - PubMed and arXiv
    - ORCID and Google Scholar (via SerpAPI)
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
