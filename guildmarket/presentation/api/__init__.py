from guildmarket.presentation.api.routes import domain_error_handler, init_routes, router

__all__ = ["router", "init_routes", "domain_error_handler"]
