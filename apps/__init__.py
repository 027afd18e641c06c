from apps.api.main import app

__all__ = ['app']
