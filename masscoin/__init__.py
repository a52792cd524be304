# masscoin/__init__.py
from masscoin.shared.models.base import Base

__all__ = ["Base"]
