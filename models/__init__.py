from .user import User
from .mark import Mark
__all__ = ["User", "Mark"]
