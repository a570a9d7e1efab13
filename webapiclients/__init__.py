"""Record types, paginators, fetchers and crawl state for several scientific and weather web APIs."""

__version__ = "0.1.0"
__all__ = ["benchling", "biorxiv", "biorxiv_state", "nws", "papersapp", "protocolsio"]