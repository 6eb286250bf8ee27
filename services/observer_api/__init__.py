from services.observer_api.server import ObserverServer, create_app

__all__ = ["ObserverServer", "create_app"]
