from .sql_adapter import SqlAdapter, build_connection_string

__all__ = ['SqlAdapter', 'build_connection_string']
