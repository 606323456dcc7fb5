"""
TRENDX - Social Graph Services
"""
from app.services.social.connection_store import ConnectionStore, diff_connections

__all__ = ["ConnectionStore", "diff_connections"]
