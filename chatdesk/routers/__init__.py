"""HTTP routers for the chat widget, operator setup and dashboard."""

from fastapi import Request

from ..runtime import ChatRuntime


def get_runtime(request: Request) -> ChatRuntime:
    return request.app.state.runtime
