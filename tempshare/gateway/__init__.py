"""HTTP gateway: FastAPI application, routers and request middleware."""
