from .facade.xmlmc_facade import XmlmcFacade

__all__ = ['XmlmcFacade']
