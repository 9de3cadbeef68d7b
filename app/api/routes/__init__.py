from . import devices, generations, quotas, users

__all__ = ["devices", "generations", "quotas", "users"]
