# Database module
from .engine import get_engine, get_session, session_scope, init_db, Base
from .store import PolicyStore, PolicyRecord

__all__ = ["get_engine", "get_session", "session_scope", "init_db", "Base", "PolicyStore", "PolicyRecord"]
