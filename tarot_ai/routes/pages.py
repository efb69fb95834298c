"""Landing, checkout return, and reading entry pages."""

import asyncio
import html
import logging

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from .. import config, payments
from ..errors import TarotError
from .wizard_routes import registry

log = logging.getLogger("tarot_ai.pages")
router = APIRouter(tags=["pages"])

_PAGE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
{head}
</head>
<body>
<main>
{body}
</main>
</body>
</html>
"""


def _page(title: str, body: str, head: str = "") -> HTMLResponse:
    return HTMLResponse(_PAGE.format(title=html.escape(title), head=head, body=body))


@router.get("/", response_class=HTMLResponse)
def index():
    return _page(
        "Tarot-AI",
        "<h1>Tarot-AI</h1>"
        "<p>Discover insights about your past, present, and future with AI-powered tarot readings.</p>"
        '<p><a href="/read">Begin Your Reading</a></p>',
    )


@router.get("/success", response_class=HTMLResponse)
def success(request: Request):
    session_id = request.query_params.get("session_id")
    if not session_id:
        return RedirectResponse("/", status_code=303)

    reading_type = payments.normalize_reading_type(request.query_params.get("readingType"))
    target = html.escape(payments.continue_url(session_id, reading_type, request.query_params.get("resume_id")))
    delay = config.SUCCESS_REDIRECT_DELAY
    return _page(
        "Payment Successful",
        "<h1>Payment Successful!</h1>"
        "<p>Thank you for your purchase! Your premium tarot reading session has been confirmed.</p>"
        "<p><em>&quot;The stars have aligned and your journey awaits...&quot;</em></p>"
        "<p>Redirecting to your reading...</p>"
        f'<p><a href="{target}">Go to Reading Now</a> <a href="/">Return Home</a></p>',
        head=f'<meta http-equiv="refresh" content="{delay};url={target}">',
    )


@router.get("/canceled", response_class=HTMLResponse)
def canceled():
    return _page(
        "Payment Canceled",
        "<h1>Payment Canceled</h1>"
        "<p>Your payment was canceled. You can still try a basic tarot reading for free, "
        "or upgrade to a premium reading whenever you're ready.</p>"
        '<p><a href="/read">Try Free Reading</a> <a href="/">Return Home</a></p>',
    )


@router.get("/read")
async def read(request: Request):
    """Start a reading, or pick a paid one back up after checkout.

    On a resume with a full selection the reading is submitted once. Either
    way the client is sent to the session's state URL, dropping the resume
    parameters.
    """
    params = request.query_params
    if params.get("continue") != "true":
        return registry.create().state

    pending = payments.resolve_resume(params)
    if pending is None:
        return RedirectResponse("/read", status_code=303)

    wizard = registry.create()
    wizard.resume(pending, params["session_id"])
    log.info("Resumed paid %s reading into session %s at %s", pending.spread_type, wizard.session_id, wizard.stage)

    if wizard.stage == "confirm":
        if config.RESUME_SUBMIT_DELAY > 0:
            await asyncio.sleep(config.RESUME_SUBMIT_DELAY)
        try:
            await wizard.submit()
        except TarotError as e:
            log.warning("Auto-submit after resume failed: %s", e.message)
            wizard.state.error = e.message
    return RedirectResponse(f"/api/wizard/{wizard.session_id}", status_code=303)
