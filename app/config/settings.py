"""
Configuration de l'application (Settings)
=========================================

Rôle
----
- Centraliser les paramètres du service (nom, host/port, backend du store, règles du jeu).
- Les valeurs par défaut conviennent pour un dev local avec le store en mémoire.
- Les variables peuvent être surchargées via un fichier `.env` ou l'environnement.

Intégrations
------------
- `pydantic-settings` charge automatiquement les variables d'env et `.env`.
- Les services/routers importent `from app.config.settings import settings`.

Exemple de `.env`
-----------------
APP_NAME="Password Party (staging)"
PORT=8080
STORE_BACKEND="firebase"
FIREBASE_DATABASE_URL="https://my-project-default-rtdb.europe-west1.firebasedatabase.app"
FIREBASE_AUTH="database-secret-or-id-token"
OPTIMISTIC_CONCURRENCY=true
"""
from typing import List, Literal, Optional
import os

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Nom du service (apparaît dans /health)
    APP_NAME: str = "Password Party Backend"
    # Bind réseau (FastAPI / Uvicorn)
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Origines du front autorisées par CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Store synchronisé : "local" (en mémoire) ou "firebase" (Realtime Database REST)
    STORE_BACKEND: Literal["local", "firebase"] = "local"
    # Store local : snapshot JSON de chaque session vivante sous DATA_DIR/sessions/
    PERSIST_SESSIONS: bool = False
    DATA_DIR: str = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")

    # Firebase Realtime Database
    FIREBASE_DATABASE_URL: Optional[str] = None
    FIREBASE_AUTH: Optional[str] = None
    FIREBASE_ROOT: str = "games"

    # Règles du jeu
    SESSION_CODE_LENGTH: int = 6
    MIN_PLAYERS: int = 2
    MAX_NAME_LENGTH: int = 32

    # Publication (concurrence optimiste, retries)
    OPTIMISTIC_CONCURRENCY: bool = True
    PUBLISH_MAX_RETRIES: int = 5
    ASSIGNMENT_ATTEMPTS: int = 20

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


# Instance unique importable : `settings`
settings = Settings()
