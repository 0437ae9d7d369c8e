"""
Module routes/health.py
Rôle:
- Endpoints de santé (service OK + joignabilité du store).

Intégrations:
- settings: nom d'app + backend du store.
- session store: `list_codes()` comme aller-retour léger vers le backend.
"""
from fastapi import APIRouter
import time

from app.config.settings import settings
from app.services.session_store import get_store
from app.services.ws_manager import WS

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health():
    """Renvoie un OK minimal avec le nom de service configuré."""
    return {"ok": True, "service": settings.APP_NAME}


@router.get("/store")
def health_store():
    """
    Vérifie le store synchronisé via une requête légère et mesure la latence.
    Renvoie la description du backend, le nombre de sessions vivantes et d'abonnés WS.
    """
    t0 = time.perf_counter()
    store = get_store()
    try:
        codes = store.list_codes()
        dt = time.perf_counter() - t0
        return {
            "ok": True,
            "store": store.describe(),
            "sessions": len(codes),
            "latency_s": round(dt, 3),
            "websockets": WS.stats(),
        }
    except Exception as e:
        dt = time.perf_counter() - t0
        return {
            "ok": False,
            "store": settings.STORE_BACKEND,
            "latency_s": round(dt, 3),
            "error": str(e),
        }
