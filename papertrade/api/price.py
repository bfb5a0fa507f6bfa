"""Price API: current price of the tracked asset."""

from fastapi import APIRouter, Depends, HTTPException

from papertrade.services.price_oracle import PriceOracle, PriceUnavailableError, get_price_oracle

router = APIRouter(prefix="/api/price", tags=["price"])


@router.get("")
async def current_price(oracle: PriceOracle = Depends(get_price_oracle)):
    """Current price, falling back to the cached value when providers are down."""
    try:
        quote = await oracle.get_quote()
    except PriceUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"price": quote.price, "source": quote.source, "cached": quote.from_cache}
