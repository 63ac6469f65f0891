from .settings import FederationSettings

__all__ = ["FederationSettings"]
