from fastapi import Request

from aigateway.gateway.gateway import GenerationGateway


def get_gateway(request: Request) -> GenerationGateway:
    """The process-wide gateway built during application startup."""
    return request.app.state.gateway
