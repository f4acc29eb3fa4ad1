"""corpusflow: token-budget-aware document ingestion for retrieval corpora."""

__version__ = "0.1.0"
