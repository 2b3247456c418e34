# module boutique.utils.visitor
from fastapi import FastAPI, Request
from fastapi.responses import Response
import secrets

from boutique.config import COOKIE_SECURE, VISITOR_COOKIE_NAME
from boutique.storage.state import VisitorState

# Un an: l'état "local" du visiteur doit survivre aux fermetures d'onglet
VISITOR_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


def get_or_create_visitor_id(request: Request) -> str:
    """
    Renvoie l'identifiant visiteur (cookie) ou en crée un nouveau.
    Le middleware le mémorise dans request.state pour que la réponse pose le cookie.
    """
    visitor_id = getattr(request.state, "visitor_id", None) or request.cookies.get(VISITOR_COOKIE_NAME)
    if not visitor_id:
        visitor_id = secrets.token_urlsafe(24)
    request.state.visitor_id = visitor_id
    return visitor_id


def attach_visitor_cookie_if_missing(response: Response, request: Request, visitor_id: str) -> None:
    if request.cookies.get(VISITOR_COOKIE_NAME) != visitor_id:
        response.set_cookie(
            key=VISITOR_COOKIE_NAME,
            value=visitor_id,
            httponly=True,
            secure=COOKIE_SECURE,
            samesite="Lax",
            max_age=VISITOR_COOKIE_MAX_AGE,
            path="/",
        )


def register_visitor_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def visitor_cookie(request: Request, call_next):
        visitor_id = get_or_create_visitor_id(request)
        response = await call_next(request)
        attach_visitor_cookie_if_missing(response, request, visitor_id)
        return response


def get_visitor_state(request: Request) -> VisitorState:
    """Dépendance FastAPI: état (local + session) du visiteur courant."""
    return VisitorState(get_or_create_visitor_id(request))
