from inkpress.health.router import router


__all__ = ["router"]
