# khorders/db/__init__.py
from khorders.db.base import Base, init_models
from khorders.db.session import get_engine, get_sessionmaker

__all__ = ["Base", "init_models", "get_engine", "get_sessionmaker"]
