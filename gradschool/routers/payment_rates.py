from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from gradschool.db import get_db
from gradschool.route_logging import EndpointNameRoute
from gradschool.services.rate_service import RateNotFoundError, resolve_rates_for_program


router = APIRouter(prefix='/payment-rates', tags=['Payment Rates'], route_class=EndpointNameRoute)


@router.get('/resolve')
def resolve(
    program: str = Query(min_length=1),
    defense_type: str = Query(min_length=1),
    db: Session = Depends(get_db),
):
    try:
        resolved = resolve_rates_for_program(db, program, defense_type)
    except RateNotFoundError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {
        'program': program,
        'program_level': resolved.program_level.value,
        'defense_type': resolved.defense_type.value,
        'rates': [{'role': role.value, 'amount': amount} for role, amount in resolved.rates],
        'total': resolved.total,
    }
