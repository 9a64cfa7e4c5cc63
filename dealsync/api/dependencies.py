# dealsync/api/dependencies.py
from fastapi import Request

from dealsync.services.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime
