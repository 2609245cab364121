from asset_proxy.routers import assets, health

__all__ = [
    "assets",
    "health",
]
