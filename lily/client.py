# lily/client.py

import os
from typing import Optional, Dict, Any, List

import requests

from .utils import get_supabase

DEFAULT_API_URL = os.getenv("LILY_API_URL", "http://127.0.0.1:8000")
# An image set renders up to eight prompts one after another, each with a Hugging Face fallback
IMAGE_SET_TIMEOUT = 900


class LilyClient:
    """HTTP client for the Lily API, authenticated with a Supabase access token."""

    def __init__(self, base_url: str = DEFAULT_API_URL, access_token: Optional[str] = None, timeout: int = 180):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self.http = requests.Session()

    # ----------------- auth -----------------

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        res = get_supabase().auth.sign_in_with_password({"email": email, "password": password})
        if not res.session or not res.user:
            raise RuntimeError("Login failed")
        self.access_token = res.session.access_token
        return {"user_id": res.user.id, "email": res.user.email}

    def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        """Creates an account. Signs in right away unless the project requires email confirmation."""
        res = get_supabase().auth.sign_up({"email": email, "password": password})
        if res.user is None:
            raise RuntimeError("Sign-up failed")
        if res.session:
            self.access_token = res.session.access_token
        return {"user_id": res.user.id, "email": res.user.email, "signed_in": res.session is not None}

    def sign_out(self):
        self.access_token = None

    # ----------------- endpoints -----------------

    def ai_chat(self, message: str, history: List[dict], collected_info: dict,
                intent: Optional[str] = None, answering: Optional[str] = None) -> Dict[str, Any]:
        return self._post("/ai-chat", {
            "message": message,
            "history": history,
            "collected_info": collected_info,
            "intent": intent,
            "answering": answering,
        })

    def generate_lesson_plan(self, info: dict) -> Dict[str, Any]:
        return self._post("/generate-lesson-plan", info)

    def generate_ppt_outline(self, info: dict) -> Dict[str, Any]:
        return self._post("/generate-ppt-outline", info)

    def generate_image_set(self, info: dict) -> Dict[str, Any]:
        return self._request("POST", "/generate-image-set", json=info, timeout=IMAGE_SET_TIMEOUT)

    def list_resources(self, limit: int = 20) -> List[Dict[str, Any]]:
        return self._request("GET", "/resources", params={"limit": limit})

    def get_resource(self, resource_id) -> Dict[str, Any]:
        return self._request("GET", f"/resources/{resource_id}")

    def get_profile(self) -> Dict[str, Any]:
        return self._request("GET", "/profile")

    def update_profile(self, fields: dict) -> Dict[str, Any]:
        return self._request("PUT", "/profile", json=fields)

    # ----------------- internal helpers -----------------

    def _post(self, path: str, body: dict):
        return self._request("POST", path, json=body)

    def _request(self, method: str, path: str, timeout: Optional[int] = None, **kwargs):
        headers = {"Authorization": f"Bearer {self.access_token}"} if self.access_token else {}
        r = self.http.request(method, self.base_url + path, headers=headers, timeout=timeout or self.timeout, **kwargs)
        r.raise_for_status()
        return r.json()
