from fastapi import APIRouter, Depends
from pydantic import BaseModel

from boutique.storage.state import VisitorState
from boutique.utils.rate_limit import optional_rate_limit
from boutique.utils.visitor import get_visitor_state
from . import service

router = APIRouter(prefix="/api/v1/account", tags=["Account"])


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


@router.get("")
def me(state: VisitorState = Depends(get_visitor_state)):
    return {"logged_in": service.is_logged_in(state), "profile": service.load_profile(state)}


@router.post("/login", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def login(body: LoginRequest, state: VisitorState = Depends(get_visitor_state)):
    return service.login(state, body.username, body.password)


@router.post("/logout")
def logout(state: VisitorState = Depends(get_visitor_state)):
    return service.logout(state)
