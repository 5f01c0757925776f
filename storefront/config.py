# storefront/config.py
import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB", "storefront")

USERS_COLLECTION = os.getenv("USERS_COLLECTION", "users")
PRODUCTS_SUBCOLLECTION = os.getenv("PRODUCTS_SUBCOLLECTION", "products")

# --- read safety ---
# hard ceiling on backend reads per UTC day
MAX_DAILY_READS = int(os.getenv("MAX_DAILY_READS", "1000"))
MAX_CACHE_SIZE = int(os.getenv("MAX_CACHE_SIZE", "100"))
MIN_READ_INTERVAL = timedelta(
    milliseconds=int(os.getenv("MIN_READ_INTERVAL_MS", "1000"))
)
CACHE_FRESHNESS_WINDOW = timedelta(
    seconds=int(os.getenv("CACHE_FRESHNESS_SECONDS", str(10 * 60)))
)
EVICTION_FRACTION = float(os.getenv("EVICTION_FRACTION", "0.2"))

# dashboard colouring only
WARNING_THRESHOLD = float(os.getenv("WARNING_THRESHOLD", "0.8"))
CAUTION_THRESHOLD = float(os.getenv("CAUTION_THRESHOLD", "0.6"))

# document store pricing, USD
COST_PER_100K_READS = float(os.getenv("COST_PER_100K_READS", "0.06"))

# base64 image payloads above this length are not stored
MAX_IMAGE_LENGTH = int(os.getenv("MAX_IMAGE_LENGTH", "1000000"))

STATIC_DATA_DIR = os.getenv("STATIC_DATA_DIR", "./static-data")
