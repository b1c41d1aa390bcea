from .api import register_visibility_tools

__all__ = ["register_visibility_tools"]
