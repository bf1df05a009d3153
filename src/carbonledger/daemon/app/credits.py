"""Ledger API: emissions, credit lifecycle, owned-tokens index, event log."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, StrictInt

from ..auth import get_principal, verify_gateway
from ..ledger import engine

router = APIRouter(prefix="/api/v1", tags=["ledger"], dependencies=[Depends(verify_gateway)])


class RecordEmissionRequest(BaseModel):
    amount: StrictInt


class MintCreditRequest(BaseModel):
    amount: StrictInt
    source: str
    emission_data: StrictInt = 0


class TokenUriRequest(BaseModel):
    uri: str = Field(..., max_length=1_048_576)


@router.post("/emissions")
def record_emission(body: RecordEmissionRequest, caller: str = Depends(get_principal)):
    engine.record_emission(caller, body.amount)
    return {"principal": caller, "emissions": engine.get_emissions(caller)}


@router.get("/emissions/{principal}")
def get_emissions(principal: str):
    return {"principal": principal, "emissions": engine.get_emissions(principal)}


@router.post("/credits", status_code=201)
def mint_credit(body: MintCreditRequest, caller: str = Depends(get_principal)):
    token_id = engine.mint_credit(caller, body.amount, body.source, body.emission_data)
    return {"token_id": token_id, "owner": caller, "amount": body.amount}


@router.post("/credits/{token_id}/offset")
def offset_emissions(token_id: int, caller: str = Depends(get_principal)):
    engine.offset_emissions(caller, token_id)
    return {
        "token_id": token_id,
        "active": False,
        "emissions": engine.get_emissions(caller),
    }


@router.get("/credits/{token_id}")
def get_credit_details(token_id: int):
    details = engine.get_credit_details(token_id)
    return {"token_id": token_id, **details._asdict()}


@router.get("/credits/{token_id}/full")
def get_credit(token_id: int):
    return engine.get_credit(token_id).to_dict()


@router.get("/credits/{token_id}/owner")
def owner_of(token_id: int):
    return {"token_id": token_id, "owner": engine.owner_of(token_id)}


@router.put("/credits/{token_id}/uri")
def set_token_uri(token_id: int, body: TokenUriRequest, caller: str = Depends(get_principal)):
    engine.set_token_uri(caller, token_id, body.uri)
    return {"token_id": token_id, "uri": body.uri}


@router.get("/credits/{token_id}/uri")
def token_uri(token_id: int):
    return {"token_id": token_id, "uri": engine.token_uri(token_id)}


@router.get("/companies/{principal}/credits")
def get_company_tokens(principal: str):
    tokens = engine.get_company_tokens(principal)
    return {"principal": principal, "count": len(tokens), "token_ids": tokens}


@router.get("/supply")
def total_supply():
    return {"total_supply": engine.total_supply()}


@router.get("/events")
def list_events(
    token_id: int | None = Query(default=None),
    principal: str | None = Query(default=None),
    after_seq: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=engine.MAX_EVENT_PAGE),
):
    events = engine.list_events(token_id=token_id, principal=principal, after_seq=after_seq, limit=limit)
    return {
        "events": [
            {
                "seq": e.seq,
                "event_type": e.event_type,
                "principal": e.principal,
                "token_id": e.token_id,
                "payload": e.payload,
                "event_hash": e.event_hash,
                "created_at": e.created_at,
            }
            for e in events
        ],
        "next_after_seq": events[-1].seq if events else after_seq,
    }
