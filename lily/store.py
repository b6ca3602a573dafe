# lily/store.py

from typing import Optional, Dict, Any, List

from supabase import Client

PROFILE_FIELDS = ("subject", "textbook_edition", "teaching_object", "long_term_goal")


class ResourceStore:
    """Profiles and teaching resources of one signed-in teacher, kept in Supabase."""

    def __init__(self, client: Client):
        self.sb = client

    # -------------------- Profiles --------------------
    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        res = (
            self.sb.table("profiles")
            .select("*")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        return res.data[0] if res.data else None

    def ensure_profile(self, user_id: str, email: Optional[str]) -> Dict[str, Any]:
        """Returns the profile row, creating it on the teacher's first visit."""
        profile = self.get_profile(user_id)
        if profile is not None:
            return profile
        ins = self.sb.table("profiles").insert({"id": user_id, "email": email}).execute()
        return ins.data[0]

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        payload = {k: v for k, v in fields.items() if k in PROFILE_FIELDS}
        if not payload:
            return self.get_profile(user_id) or {}
        res = self.sb.table("profiles").update(payload).eq("id", user_id).execute()
        return res.data[0] if res.data else {}

    # -------------------- Teaching Resources --------------------
    def insert_resource(self, user_id: str, title: str, content: str,
                        resource_type: str, metadata: dict | None = None) -> Dict[str, Any]:
        ins = self.sb.table("teaching_resources").insert({
            "user_id": user_id,
            "title": title,
            "content": content,
            "resource_type": resource_type,
            "metadata": metadata or {},
        }).execute()
        return ins.data[0]

    def get_resource(self, user_id: str, resource_id: int) -> Optional[Dict[str, Any]]:
        res = (
            self.sb.table("teaching_resources")
            .select("*")
            .eq("id", resource_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return res.data[0] if res.data else None

    def list_resources(self, user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        res = (
            self.sb.table("teaching_resources")
            .select("id,title,resource_type,metadata,created_at")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
