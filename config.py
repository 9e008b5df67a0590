import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env next to this file first, then whatever is in the working directory.
load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env", override=False)
load_dotenv(override=False)

STORE_BACKEND = os.getenv("FORUM_STORE", "firestore").strip().lower()
POSTS_COLLECTION = os.getenv("FORUM_POSTS_COLLECTION", "posts")
SUBSCRIBER_QUEUE_SIZE = int(os.getenv("FORUM_SUBSCRIBER_QUEUE_SIZE", "256"))
ALLOWED_HOSTS = [h.strip() for h in os.getenv("FORUM_ALLOWED_HOSTS", "*").split(",") if h.strip()]
LOG_LEVEL = os.getenv("FORUM_LOG_LEVEL", "INFO").upper()

MAX_TITLE_LENGTH = 200
