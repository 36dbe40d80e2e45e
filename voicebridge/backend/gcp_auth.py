import base64
import binascii
import json
import os
import threading
from functools import lru_cache
from typing import Optional

from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account


CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
DEFAULT_VERTEX_LOCATION = "us-central1"

_token_lock = threading.Lock()


def _service_account_info(raw: str, source: str, *, encoded: bool = False) -> dict:
    text = raw.strip()
    if encoded:
        text += "=" * ((-len(text)) % 4)
        try:
            text = base64.b64decode(text).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise RuntimeError(f"{source} is not valid base64.") from exc

    try:
        info = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"{source} does not contain valid JSON.") from exc
    if not isinstance(info, dict):
        raise RuntimeError(f"{source} must contain a JSON object.")
    return info


@lru_cache(maxsize=1)
def get_gcp_credentials() -> Optional[service_account.Credentials]:
    """Service-account credentials for Vertex AI, or None when none are configured.

    Checked in order: ``GOOGLE_APPLICATION_CREDENTIALS_B64``,
    ``GOOGLE_APPLICATION_CREDENTIALS_JSON``, then the file named by
    ``GOOGLE_APPLICATION_CREDENTIALS``.
    """
    scopes = [CLOUD_PLATFORM_SCOPE]
    for source, encoded in (
        ("GOOGLE_APPLICATION_CREDENTIALS_B64", True),
        ("GOOGLE_APPLICATION_CREDENTIALS_JSON", False),
    ):
        raw = os.getenv(source, "").strip()
        if raw:
            info = _service_account_info(raw, source, encoded=encoded)
            return service_account.Credentials.from_service_account_info(info, scopes=scopes)

    key_file = os.getenv("GOOGLE_APPLICATION_CREDENTIALS", "").strip()
    if not key_file:
        return None
    if not os.path.exists(key_file):
        raise RuntimeError(f"GOOGLE_APPLICATION_CREDENTIALS points to a missing file: {key_file}")
    return service_account.Credentials.from_service_account_file(key_file, scopes=scopes)


def get_project_id_hint() -> Optional[str]:
    project = os.getenv("GCP_PROJECT_ID", "").strip()
    if project:
        return project
    creds = get_gcp_credentials()
    return getattr(creds, "project_id", None) if creds is not None else None


def get_vertex_location() -> str:
    return os.getenv("GCP_LOCATION", DEFAULT_VERTEX_LOCATION).strip() or DEFAULT_VERTEX_LOCATION


def get_access_token() -> str:
    creds = get_gcp_credentials()
    if creds is None:
        raise RuntimeError("No Google service account credentials are configured.")

    # Credentials objects are shared; refresh one request at a time.
    with _token_lock:
        if not creds.valid:
            try:
                creds.refresh(GoogleAuthRequest())
            except Exception as exc:
                raise RuntimeError(f"Failed to refresh Google access token: {exc}") from exc
        return creds.token
