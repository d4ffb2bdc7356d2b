from .state_store import ConfigStateStore

__all__ = ["ConfigStateStore"]
