"""FastAPI dependencies."""

from fastapi import Request

from credit_engine.engine import CreditEngine


def get_engine(request: Request) -> CreditEngine:
    """The engine built at startup (or injected by ``create_app``)."""
    return request.app.state.engine
