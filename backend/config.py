# backend.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale du backend.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Stripe, Supabase, Mailjet, OpenRouter)
- Expose les URLs frontend/backend utilisées pour les redirections de checkout
- Paramètres de rate limiting (fenêtre globale et fenêtre chat)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name)) or default)
    except ValueError:
        return default

# Environnement: "production" masque les détails de diagnostic dans les réponses d'erreur
APP_ENV = _clean_env(os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "development").lower()
IS_PRODUCTION = APP_ENV == "production"

# URLs frontend/backend
# - FRONTEND_URL sert de base aux success_url / cancel_url du checkout
FRONTEND_URL = _clean_env(os.getenv("FRONTEND_URL") or "http://localhost:8080").rstrip("/")
BACKEND_URL = _clean_env(os.getenv("BACKEND_URL") or "http://localhost:4242").rstrip("/")

# CORS: origines autorisées (credentials activés)
_default_origins = f"{FRONTEND_URL},http://localhost:5173,http://localhost:3000"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", _default_origins).split(",") if o.strip()]

COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")

# Stripe: clé secrète (VITE_STRIPE_SECRET_KEY accepté pour compat avec l'ancien .env)
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or os.getenv("VITE_STRIPE_SECRET_KEY") or "")
STRIPE_CURRENCY = _clean_env(os.getenv("STRIPE_CURRENCY") or "usd").lower()

# CSRF: secret injecté dans CsrfService; vide => secret généré par processus
CSRF_SECRET = _clean_env(os.getenv("CSRF_SECRET") or "")

# Chat IA (OpenRouter); DEEPSEEK_API_KEY conservé comme alias historique
OPENROUTER_API_KEY = _clean_env(os.getenv("OPENROUTER_API_KEY") or os.getenv("DEEPSEEK_API_KEY") or "")
OPENROUTER_URL = _clean_env(os.getenv("OPENROUTER_URL") or "https://openrouter.ai/api/v1/chat/completions")
CHAT_DEFAULT_MODEL = _clean_env(os.getenv("CHAT_DEFAULT_MODEL") or "deepseek/deepseek-r1-0528:free")
CHAT_TITLE = os.getenv("CHAT_TITLE", "Quibble Concierge")

# Mailjet (relais email)
MAILJET_API_KEY = _clean_env(os.getenv("MAILJET_API_KEY") or "")
MAILJET_API_SECRET = _clean_env(os.getenv("MAILJET_API_SECRET") or "")
MAILJET_URL = _clean_env(os.getenv("MAILJET_URL") or "https://api.mailjet.com/v3.1/send")
MAIL_FROM_EMAIL = _clean_env(os.getenv("MAIL_FROM_EMAIL") or "info@quibble.online")
MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "Quibble Wellness Store")

# Supabase: stockage des commandes et authentification
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

ORDERS_TABLE = os.getenv("ORDERS_TABLE", "store_orders")
ADMIN_EMAILS = [e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()]

# Rate limiting: fenêtre globale (100 req / 15 min) et fenêtre chat (10 req / min)
RATE_LIMIT_TIMES = _int_env("RATE_LIMIT_TIMES", 100)
RATE_LIMIT_SECONDS = _int_env("RATE_LIMIT_SECONDS", 15 * 60)
CHAT_RATE_LIMIT_TIMES = _int_env("CHAT_RATE_LIMIT_TIMES", 10)
CHAT_RATE_LIMIT_SECONDS = _int_env("CHAT_RATE_LIMIT_SECONDS", 60)
