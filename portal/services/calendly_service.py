import logging
from typing import Any, Optional

import httpx

from .. import config

logger = logging.getLogger(__name__)

WEBHOOK_EVENTS = ["invitee.created", "invitee.canceled"]


def map_event_status(status: Optional[str]) -> str:
    """Calendly status -> portal appointment status"""
    status = (status or "active").lower()
    if status == "canceled":
        return "cancelled"
    if status == "completed":
        return "completed"
    return "scheduled"


def event_start(ev: dict[str, Any]) -> Optional[str]:
    return ev.get("start_time") or ev.get("start_time_utc") or ev.get("startTime")


def event_end(ev: dict[str, Any]) -> Optional[str]:
    return ev.get("end_time") or ev.get("end_time_utc") or ev.get("endTime")


def event_title(ev: dict[str, Any]) -> str:
    return ev.get("name") or (ev.get("event_type") or {}).get("name") or "Calendly Event"


def event_notes(ev: dict[str, Any]) -> Optional[str]:
    location = ev.get("location")
    if isinstance(location, dict):
        location = location.get("location") or location.get("join_url") or location.get("type")
    return location or ev.get("description") or None


def response_object(response: httpx.Response) -> dict[str, Any]:
    """JSON object body of a Calendly response, or {} when the body is not one"""
    try:
        body = response.json()
    except ValueError:
        logger.warning(f"⚠️ Calendly returned a non-JSON body ({response.status_code})")
        return {}
    return body if isinstance(body, dict) else {}


def response_events(response: httpx.Response) -> list[dict[str, Any]]:
    collection = response_object(response).get("collection")
    if not isinstance(collection, list):
        return []
    return [ev for ev in collection if isinstance(ev, dict)]


def normalize_event(ev: dict[str, Any], created_fallback: str) -> dict[str, Any]:
    """Shape a Calendly scheduled event like a portal appointment"""
    start = event_start(ev)
    title = event_title(ev)
    event_id = ev.get("uri") or ev.get("uuid") or f"{start}-{title}"
    return {
        "id": f"cal-{event_id}",
        "attendee_user_id": "calendly",
        "provider_user_id": None,
        "start_time": start,
        "end_time": event_end(ev),
        "status": map_event_status(ev.get("status")),
        "notes": event_notes(ev),
        "title": title,
        "source": "calendly",
        "created_at": ev.get("created_at") or created_fallback,
    }


class CalendlyService:
    """Service for interacting with Calendly API using a personal access token"""

    BASE_URL = "https://api.calendly.com"

    def __init__(self, api_token: Optional[str] = None):
        self.api_token = api_token or config.CALENDLY_API_TOKEN

    def is_available(self) -> bool:
        return bool(self.api_token)

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_token}", "Content-Type": "application/json"}

    async def get_current_user(self) -> dict[str, Any]:
        """Get the token owner's user resource"""
        async with httpx.AsyncClient(timeout=30) as client:
            response = await client.get(f"{self.BASE_URL}/users/me", headers=self.headers)
            response.raise_for_status()
            resource = response_object(response).get("resource")
            return resource if isinstance(resource, dict) else {}

    async def list_events_for_invitee(self, email: str) -> list[dict[str, Any]]:
        """
        Active scheduled events for an invitee email.

        Filters by invitee_email first; when Calendly rejects that query,
        falls back to the token user's events filtered by invitee emails.
        """
        async with httpx.AsyncClient(timeout=30) as client:
            response = await client.get(
                f"{self.BASE_URL}/scheduled_events",
                headers=self.headers,
                params={"invitee_email": email, "status": "active"},
            )
            if response.status_code == 200:
                return response_events(response)

            logger.warning(
                f"⚠️ Calendly invitee_email query failed ({response.status_code}), using user fallback"
            )
            who = await client.get(f"{self.BASE_URL}/users/me", headers=self.headers)
            if who.status_code != 200:
                return []
            resource = response_object(who).get("resource")
            user_uri = resource.get("uri") if isinstance(resource, dict) else None
            if not user_uri:
                return []

            events_response = await client.get(
                f"{self.BASE_URL}/scheduled_events",
                headers=self.headers,
                params={"user": user_uri, "status": "active"},
            )
            if events_response.status_code != 200:
                return []
            events = response_events(events_response)

        wanted = email.lower()
        matched = []
        for ev in events:
            invitees = ev.get("invitees") or ev.get("tracking") or []
            emails = [
                str(i.get("email")).lower()
                for i in invitees
                if isinstance(invitees, list) and isinstance(i, dict) and i.get("email")
            ]
            if wanted in emails:
                matched.append(ev)
        return matched

    async def create_webhook_subscription(self, callback_url: str, user_uri: str) -> dict[str, Any]:
        """Subscribe callback_url to invitee created/canceled events for the user"""
        async with httpx.AsyncClient(timeout=30) as client:
            response = await client.post(
                f"{self.BASE_URL}/webhook_subscriptions",
                headers=self.headers,
                json={
                    "url": callback_url,
                    "events": WEBHOOK_EVENTS,
                    "scope": "user",
                    "user": user_uri,
                },
            )
            response.raise_for_status()
            logger.info(f"✅ Calendly webhook subscription created for {callback_url}")
            return response_object(response)


calendly_service = CalendlyService()
