# apca/api/market_data.py
from apca.endpoint import Base, Endpoint
from apca.models import LatestQuotes as LatestQuotesResponse
from apca.models import LatestQuotesRequest


def _latest_quotes_query(req: LatestQuotesRequest):
    return [("symbols", req.symbols), ("feed", req.feed)]


LatestQuotes = Endpoint(
    name="LatestQuotes",
    method="GET",
    path="/v2/stocks/quotes/latest",
    output=LatestQuotesResponse,
    query=_latest_quotes_query,
    errors={400: "InvalidInput"},
    base=Base.DATA,
)
