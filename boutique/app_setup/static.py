"""
Montage des fichiers statiques.
Expose /public -> tout le répertoire public (pages de démonstration, retours de paiement).
"""
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from boutique.config import PUBLIC_DIR


def mount_static_files(app: FastAPI) -> None:
    app.mount("/public", StaticFiles(directory=str(PUBLIC_DIR), check_dir=False), name="public")
