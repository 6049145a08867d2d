"""Sample provider routes used by the CLI demo.

A tiny in-memory offer catalog served over a Pipe:

    GET    /offers           list offers (optional ?status=active)
    GET    /offers/:id       one offer
    POST   /offers           create an offer (validated body)
    DELETE /offers/:id       close an offer (owner only)
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from .errors import NotAuthorizedError, NotFoundError
from .pipe import Pipe
from .protocol.envelopes import PipeMethod, PipeRequest, PipeResponseCode
from .protocol.validation import validate_body_or_params


class OfferCreate(BaseModel):
    """Body of POST /offers."""

    fee: int = Field(ge=0)
    stock_amount: int = Field(ge=1)
    details_link: str = ""


class OfferCatalog:
    """Offers owned by one provider."""

    def __init__(self, owner: str) -> None:
        self.owner = owner
        self._offers: dict[str, dict[str, Any]] = {}
        self._next_id = 0

    def add(self, offer: OfferCreate) -> dict[str, Any]:
        offer_id = str(self._next_id)
        self._next_id += 1
        record = {"id": offer_id, "ownerAddr": self.owner, "status": "active", **offer.model_dump()}
        self._offers[offer_id] = record
        return record

    def list_offers(self, req: PipeRequest) -> dict[str, Any]:
        status = req.params.get("status")
        offers = [o for o in self._offers.values() if status is None or o["status"] == status]
        return {"code": PipeResponseCode.OK, "body": offers}

    def get_offer(self, req: PipeRequest) -> dict[str, Any]:
        offer = self._offers.get(req.path_params["id"])
        if offer is None:
            raise NotFoundError(f"Offer {req.path_params['id']} is not found")
        return {"body": offer}

    async def create_offer(self, req: PipeRequest) -> dict[str, Any]:
        offer = validate_body_or_params(req.body, OfferCreate)
        return {"body": self.add(offer)}

    async def close_offer(self, req: PipeRequest) -> None:
        offer = self._offers.get(req.path_params["id"])
        if offer is None:
            raise NotFoundError(f"Offer {req.path_params['id']} is not found")
        if req.requester != self.owner:
            raise NotAuthorizedError("Only the offer owner can close it")
        offer["status"] = "closed"


def register_offer_routes(pipe: Pipe, catalog: OfferCatalog) -> None:
    """Register the catalog's routes on `pipe`."""
    pipe.route(PipeMethod.GET, "/offers", catalog.list_offers)
    pipe.route(PipeMethod.POST, "/offers", catalog.create_offer)
    pipe.route(PipeMethod.GET, "/offers/:id", catalog.get_offer)
    pipe.route(PipeMethod.DELETE, "/offers/:id", catalog.close_offer)
