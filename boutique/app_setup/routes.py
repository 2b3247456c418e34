"""
Routes simples (hors routers) pour la page d'accueil.
- Sert / (et /index.html) depuis public/index.html si présent, sinon redirige vers /public/index.html.
- /favicon.ico: pas de contenu (204) pour éviter des 404 dans les logs.
"""
from fastapi import FastAPI
from fastapi.responses import FileResponse, RedirectResponse, Response
from starlette.status import HTTP_204_NO_CONTENT, HTTP_303_SEE_OTHER
from boutique.config import PUBLIC_DIR


def _index():
    index_path = PUBLIC_DIR / "index.html"
    if index_path.exists():
        return FileResponse(str(index_path))
    return RedirectResponse(url="/public/index.html", status_code=HTTP_303_SEE_OTHER)


def register_routes(app: FastAPI) -> None:
    @app.get("/", include_in_schema=False)
    def root():
        return _index()

    @app.get("/index.html", include_in_schema=False)
    def index_alias():
        return _index()

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=HTTP_204_NO_CONTENT)
