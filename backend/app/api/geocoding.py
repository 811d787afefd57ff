"""Reverse geocoding proxy, so browsers never call Nominatim directly."""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.services.geocoding import GeocodingError, ReverseGeocoder, ReverseGeocodeResult, get_geocoder

router = APIRouter(prefix="/geocoding", tags=["geocoding"])


@router.get("/reverse")
async def reverse_geocode(
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    geocoder: ReverseGeocoder = Depends(get_geocoder),
):
    if lat is None or lng is None:
        return JSONResponse(
            status_code=400,
            content={"error": "Missing lat or lng parameters"},
        )

    try:
        result = await geocoder.reverse(lat, lng)
    except GeocodingError as exc:
        return JSONResponse(
            status_code=500,
            content={"error": str(exc), **ReverseGeocodeResult().to_dict()},
        )
    return result.to_dict()
