import os
import logging
import stripe
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./orderflow.db")
SQLALCHEMY_DATABASE_URI = DATABASE_URL

# Bearer tokens are issued by the identity service; we only verify them
SECRET_KEY: str = os.getenv("SECRET_KEY", "a_very_secret_key_that_should_be_in_env_file_and_much_stronger")
ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 30))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "USD").upper()
SHOP_URL: str = os.getenv("SHOP_URL", "http://localhost:3003")

# Catalog collaborator
CATALOG_BASE_URL: str = os.getenv("CATALOG_BASE_URL", "http://catalog:8000")
CATALOG_TIMEOUT: float = float(os.getenv("CATALOG_TIMEOUT", 5.0))

# Outbound gateway calls
GATEWAY_TIMEOUT: float = float(os.getenv("GATEWAY_TIMEOUT", 10.0))
GATEWAY_MAX_RETRIES: int = int(os.getenv("GATEWAY_MAX_RETRIES", 2))
GATEWAY_RETRY_BACKOFF: float = float(os.getenv("GATEWAY_RETRY_BACKOFF", 0.5))

# How long a caller that lost the intent claim waits for the winner
INTENT_CLAIM_WAIT: float = float(os.getenv("INTENT_CLAIM_WAIT", 5.0))
INTENT_CLAIM_POLL: float = float(os.getenv("INTENT_CLAIM_POLL", 0.25))

# Stripe API Keys
STRIPE_PUBLISHABLE_KEY: str = os.getenv("STRIPE_PUBLISHABLE_KEY", "pk_test_YOUR_STRIPE_PUBLISHABLE_KEY")
STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "sk_test_YOUR_STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "whsec_YOUR_STRIPE_WEBHOOK_SECRET")
STRIPE_WEBHOOK_TOLERANCE: int = int(os.getenv("STRIPE_WEBHOOK_TOLERANCE", 300))

# PayPal REST credentials
PAYPAL_CLIENT_ID: str = os.getenv("PAYPAL_CLIENT_ID", "YOUR_PAYPAL_CLIENT_ID")
PAYPAL_CLIENT_SECRET: str = os.getenv("PAYPAL_CLIENT_SECRET", "YOUR_PAYPAL_CLIENT_SECRET")
PAYPAL_WEBHOOK_ID: str = os.getenv("PAYPAL_WEBHOOK_ID", "YOUR_PAYPAL_WEBHOOK_ID")
PAYPAL_BASE_URL: str = os.getenv("PAYPAL_BASE_URL", "https://api-m.sandbox.paypal.com")

# Initialize Stripe API key
if STRIPE_SECRET_KEY and "YOUR_STRIPE_SECRET_KEY" not in STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY
else:
    # Avoid logging the key itself.
    logger.warning("Stripe secret key is not configured or is using a placeholder value.")

# Network retries for idempotent Stripe calls; creates always carry our own idempotency key
stripe.max_network_retries = GATEWAY_MAX_RETRIES

if "YOUR_PAYPAL" in PAYPAL_CLIENT_ID or "YOUR_PAYPAL" in PAYPAL_CLIENT_SECRET:
    logger.warning("PayPal credentials are not configured or are using placeholder values.")
