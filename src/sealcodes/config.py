import os
from dotenv import load_dotenv

load_dotenv()

# Deployment profile; "production" forbids the non-cryptographic signer
SEALCODES_ENV = os.getenv("SEALCODES_ENV", "development").lower()
SERVICE_NAME = os.getenv("SERVICE_NAME", "seal.codes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "[%(asctime)s] %(levelname)s %(name)s %(message)s")

# Signing strategy: ed25519|mock
SIGNER_BACKEND = os.getenv("SIGNER_BACKEND", "ed25519").lower()
SIGNING_KEY_ID = os.getenv("SIGNING_KEY_ID", "")
# PEM text wins over the path when both are set
SIGNING_PRIVATE_KEY = os.getenv("SIGNING_PRIVATE_KEY", "")
SIGNING_PRIVATE_KEY_PATH = os.getenv("SIGNING_PRIVATE_KEY_PATH", "keys/attestation_ed25519_sk.pem")

DATA_DIR = os.getenv("DATA_DIR", "var/data")
KEY_REGISTRY_DB = os.getenv("KEY_REGISTRY_DB", os.path.join(DATA_DIR, "signing_keys.db"))

# External auth collaborator (GoTrue-style /user endpoint)
AUTH_USER_URL = os.getenv("AUTH_USER_URL", "")
AUTH_API_KEY = os.getenv("AUTH_API_KEY", "")
AUTH_TIMEOUT_SEC = float(os.getenv("AUTH_TIMEOUT_SEC", "5"))

# Pending sealing operations (redirect-spanning OAuth flow)
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
PENDING_TTL_SEC = int(os.getenv("PENDING_TTL_SEC", "1800"))

CORS_ALLOW_HEADERS = [
    h.strip()
    for h in os.getenv("CORS_ALLOW_HEADERS", "authorization,x-client-info,apikey,content-type").split(",")
    if h.strip()
]


def is_production() -> bool:
    return SEALCODES_ENV == "production"
