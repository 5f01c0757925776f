# api/auth.py
from fastapi import HTTPException, Security
import os
from fastapi.security.api_key import APIKeyHeader
from dotenv import load_dotenv

load_dotenv()
API_KEY = os.getenv("API_KEY")
APIKEY_NAME = "X-API-Key"
api_key_header = APIKeyHeader(name=APIKEY_NAME, auto_error=False)


async def get_api_key(api_key_header: str = Security(api_key_header)):
    """
    Guard for the owner dashboard and admin routes.

    Public: /websites/{slug} and /websites/{slug}/products/{item_id}.
    Key required:
        - owner routes under /owners/{owner_id}/ (business create/edit,
          product create/update/delete, website preview by owner id)
        - admin routes: /safety/stats (read-budget dashboard),
          /admin/cache/clear and /companies (static export index)

    The key is shared by the dashboard backend; it does not identify
    which owner is calling, so owner_id comes from the path.

    Raises:
        HTTPException: 401 if the header is missing
        HTTPException: 403 if the key does not match API_KEY
    """
    if not api_key_header:
        raise HTTPException(status_code=401, detail="Missing API Key")
    if not API_KEY or api_key_header != API_KEY:
        raise HTTPException(status_code=403, detail="Forbidden")
    return api_key_header
