"""
Transactional email through the provider's HTTP API
"""
import asyncio
from html import escape
from typing import Any, Dict, List, Optional, Union

import aiohttp

from .config import settings
from .logging_config import setup_logging

logger = setup_logging(__name__)


class EmailSender:
    """Posts messages to the email provider; every call is bounded by EXTERNAL_CALL_TIMEOUT"""

    def __init__(self, api_url: Optional[str] = None, api_key: Optional[str] = None,
                 sender: Optional[str] = None):
        self.api_url = api_url or settings.EMAIL_API_URL
        self.api_key = api_key if api_key is not None else settings.EMAIL_API_KEY
        self.sender = sender or settings.EMAIL_FROM

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def send(self, to: Union[str, List[str]], subject: str, html: str) -> bool:
        """Send one email; returns False instead of raising when the provider is unavailable"""
        if not self.configured:
            logger.info(f"Email API key not configured, skipping email: {subject}")
            return False

        payload = {
            "from": self.sender,
            "to": [to] if isinstance(to, str) else to,
            "subject": subject,
            "html": html,
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

        try:
            return await asyncio.wait_for(self._post(payload, headers), timeout=settings.EXTERNAL_CALL_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(f"Email send timed out after {settings.EXTERNAL_CALL_TIMEOUT}s: {subject}")
            return False
        except aiohttp.ClientError as e:
            logger.warning(f"Email send failed: {e}")
            return False

    async def _post(self, payload: Dict[str, Any], headers: Dict[str, str]) -> bool:
        async with aiohttp.ClientSession() as session:
            async with session.post(self.api_url, json=payload, headers=headers) as response:
                if response.status >= 400:
                    body = await response.text()
                    logger.warning(f"Email provider returned {response.status}: {body[:200]}")
                    return False
                return True


_sender: Optional[EmailSender] = None


def get_email_sender() -> EmailSender:
    """FastAPI dependency returning the shared sender"""
    global _sender
    if _sender is None:
        _sender = EmailSender()
    return _sender


async def send_safely(sender: EmailSender, to: Optional[str], subject: str, html: str) -> bool:
    """Send without letting any failure reach the caller"""
    if not to:
        return False
    try:
        return await sender.send(to, subject, html)
    except Exception as e:
        logger.warning(f"Email to {to} failed: {e}")
        return False


# Templates

def _layout(title: str, body: str, cta_text: Optional[str] = None, cta_link: Optional[str] = None) -> str:
    button = ""
    if cta_text and cta_link:
        button = (
            f'<p style="text-align:center;margin:32px 0;">'
            f'<a href="{escape(cta_link)}" style="background:#2563eb;color:#fff;padding:12px 24px;'
            f'border-radius:8px;text-decoration:none;">{escape(cta_text)}</a></p>'
        )
    return (
        '<!DOCTYPE html><html><head><meta charset="UTF-8"></head>'
        '<body style="font-family:Segoe UI,Tahoma,sans-serif;background:#f5f5f5;padding:20px;">'
        '<div style="max-width:600px;margin:0 auto;background:#fff;border-radius:12px;padding:32px;">'
        f'<h1 style="font-size:22px;">{escape(title)}</h1>{body}{button}'
        '<p style="color:#888;font-size:12px;margin-top:32px;">'
        f'You can change which emails you receive in your <a href="{settings.SITE_URL}/account">account settings</a>.'
        '</p></div></body></html>'
    )


def welcome_email(display_name: str) -> Dict[str, str]:
    return {
        "subject": "Welcome to the community",
        "html": _layout(
            f"Welcome, {display_name}!",
            "<p>Your account is ready. Explore courses, join the forums and share projects with other members.</p>",
            "Get started",
            settings.SITE_URL,
        ),
    }


def forum_reply_email(recipient_name: str, replier_name: str, post_title: str,
                      reply_content: str, link: str) -> Dict[str, str]:
    excerpt = reply_content if len(reply_content) <= 300 else reply_content[:300] + "..."
    return {
        "subject": f"New reply to \"{post_title}\"",
        "html": _layout(
            f"Hi {recipient_name}",
            f"<p>{escape(replier_name)} replied to your post <strong>{escape(post_title)}</strong>:</p>"
            f'<blockquote style="border-left:3px solid #ddd;padding-left:12px;color:#444;">{escape(excerpt)}</blockquote>',
            "View the discussion",
            f"{settings.SITE_URL}{link}",
        ),
    }


def new_project_email(recipient_name: str, project: Dict[str, Any]) -> Dict[str, str]:
    technologies = ", ".join(project.get("technologies") or []) or "Not specified"
    return {
        "subject": f"New project: {project['title']}",
        "html": _layout(
            f"Hi {recipient_name}",
            f"<p>A new project was posted: <strong>{escape(project['title'])}</strong></p>"
            f"<p>{escape((project.get('description') or '')[:500])}</p>"
            f"<p>Technologies: {escape(technologies)}</p>",
            "View the project",
            f"{settings.SITE_URL}/projects",
        ),
    }


def project_offer_email(owner_name: str, offerer_name: str, project_title: str,
                        offer: Dict[str, Any]) -> Dict[str, str]:
    amount = ""
    if offer.get("offer_amount") is not None:
        amount = f"<p>Offer: {offer['offer_amount']} {escape(offer.get('offer_currency') or 'ILS')}</p>"
    return {
        "subject": f"New offer on \"{project_title}\"",
        "html": _layout(
            f"Hi {owner_name}",
            f"<p>{escape(offerer_name)} sent an offer on your project <strong>{escape(project_title)}</strong>.</p>"
            f"{amount}<p>{escape(offer.get('message') or '')}</p>",
            "Review offers",
            f"{settings.SITE_URL}/projects",
        ),
    }


def event_registration_email(display_name: str, event: Dict[str, Any]) -> Dict[str, str]:
    when = f"{event['event_date']} {str(event['event_time'])[:5]}"
    location = f"<p>Where: {escape(event['location'])}</p>" if event.get("location") else ""
    return {
        "subject": f"You're registered: {event['title']}",
        "html": _layout(
            f"Hi {display_name}",
            f"<p>You are registered for <strong>{escape(event['title'])}</strong>.</p>"
            f"<p>When: {escape(when)}</p>{location}",
            "Event details",
            f"{settings.SITE_URL}/live-log/{event['id']}",
        ),
    }
