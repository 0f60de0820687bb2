from .xmlmc_facade import XmlmcFacade, SearchResult, WriteResult, NO_VALUES_TO_UPDATE

__all__ = ['XmlmcFacade', 'SearchResult', 'WriteResult', 'NO_VALUES_TO_UPDATE']
