"""
Application FastAPI : point d'entrée
====================================

Rôle
----
- Instancie l'app FastAPI, configure le CORS pour le front,
- Monte les routeurs (REST + WebSocket),
- Configure le logging et affiche le backend du store et la liste des routes au démarrage.

Notes
-----
- Les importations des routeurs sont explicites pour éviter les surprises d'auto-discovery.
- Garder `settings.ALLOWED_ORIGINS` en phase avec les URLs du front.
- ⚠️ Le middleware CORS doit être ajouté AVANT les include_router.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config.settings import settings
from app.routes.health import router as health_router
from app.routes.session import router as session_router
from app.routes.websocket import router as ws_router
from app.services.session_store import get_store
from app.services.ws_manager import WS

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Au démarrage :
    - construit le store configuré (échoue tôt si la config Firebase est mauvaise),
    - logge les routes (path + methods) pour diagnostic.
    À l'arrêt : coupe tous les abonnements WebSocket.
    """
    store = get_store()
    logger.info("Store: %s", store.describe())
    for r in app.routes:
        logger.debug("Route %s %s", getattr(r, "path", "?"), getattr(r, "methods", None))
    yield
    WS.close_all()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(session_router)
app.include_router(ws_router)                  # WebSocket endpoint (/ws/session/{code})
app.include_router(health_router)


@app.get("/")
async def root():
    """Ping basique : l'app répond (sans aller-retour vers le store)."""
    return {"ok": True, "service": "password-party-backend"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT)
