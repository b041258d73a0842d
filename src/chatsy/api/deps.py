"""Shared route dependencies."""

from fastapi import Request

from chatsy.session import Session


def get_session(request: Request) -> Session:
    return request.app.state.session
