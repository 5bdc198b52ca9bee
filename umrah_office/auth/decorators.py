from functools import wraps
from typing import Optional

from flask import current_app, g, session

from umrah_office.domain import Agent
from umrah_office.errors import AuthenticationError, Forbidden, NotFoundError


def current_agent() -> Optional[Agent]:
    """The logged-in agent, loaded once per session id."""
    agent_id = session.get("agent_id")
    if not agent_id:
        return None
    cached = g.get("agent")
    if cached is not None and cached.id == agent_id:
        return cached
    try:
        agent = current_app.extensions["store"].get_agent(agent_id)
    except NotFoundError:
        session.clear()
        return None
    g.agent = agent
    return agent


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if current_agent() is None:
            raise AuthenticationError("Login required")
        return fn(*args, **kwargs)
    return wrapper


def roles_required(*roles):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            agent = current_agent()
            if agent is None:
                raise AuthenticationError("Login required")
            if agent.role not in roles:
                raise Forbidden("You do not have access to this resource")
            return fn(*args, **kwargs)
        return wrapper
    return decorator
