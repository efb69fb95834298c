from fastapi import APIRouter, Request

from .. import payments
from ..models import CheckoutRequest, CheckoutResponse

router = APIRouter(prefix="/api", tags=["checkout"])


def request_origin(request: Request) -> str:
    """Origin used to build the checkout return URLs."""
    origin = request.headers.get("origin")
    if origin:
        return origin.rstrip("/")
    return str(request.base_url).rstrip("/")


@router.post("/checkout", response_model=CheckoutResponse)
def create_checkout(req: CheckoutRequest, request: Request) -> CheckoutResponse:
    url = payments.create_checkout_session(req.reading_type, request_origin(request))
    return CheckoutResponse(url=url)
