# webapiclients

Building blocks for crawling a handful of web APIs, using only the
standard library. Each module covers one service.

## Modules

### `webapiclients.benchling`

- `APIToken(token)` – `with_authorization(request)` adds a
  `Basic` `Authorization` header built from the token to a
  `urllib.request.Request` (or anything with `add_header`).
- `Backoff(initial, steps, *, sleep=time.sleep, rng=None)` – delays are
  in seconds. `wait(response)` sleeps for the value of the
  `x-rate-limit-reset` header plus a little jitter when the header holds a
  positive integer, and otherwise for the current delay, which doubles
  after each such wait. It returns `True` once `steps` retries have been
  used and `False` after a wait. `retries` tells how many waits happened.
  A response without `headers` raises `TypeError`.
- `Checkpoint(users_date, entries_date)` with `load_checkpoint(op)` and
  `save_checkpoint(op, checkpoint)`. Missing dates load as the zero time
  `0001-01-01T00:00:00Z`.

### `webapiclients.biorxiv`

- `PreprintDetail`, `Message` and `Response` records, and
  `parse_response(data)` to decode a JSON response.
- `as_int64(value)` converts the cursor and total fields, which the API
  sends either as numbers or strings, to an `int`; `None` gives `0`.
- `Paginator(service_url, start, end, cursor=0)` – builds
  `<service_url>/<start>/<end>/<cursor>` requests, with dates as
  `YYYY-MM-DD`, and stops once `cursor + count` reaches the total.

### `webapiclients.biorxiv_state`

- `CrawlState(start, end, cursor, total)` with `clear()`,
  `sync(restart, start, end)`, `update(cursor, total)` and `save(op)`,
  and `load_state(op)`. `sync` resets the cursor when the start date
  changes and uses the current time when no end date is given, so an
  incremental crawl picks up where the previous one stopped.

### `webapiclients.protocolsio`

- Records `Pagination`, `ListProtocolsV3`, `Creator`, `Protocol` and
  `ProtocolPayload`, decoded by `parse_list_protocols(data)` and
  `parse_protocol_payload(data)`.
- `Checkpoint` with `to_json()` / `from_json(data)`.
- `Paginator(checkpoint, options)` with `PaginatorOptions(endpoint_url,
  parameters, from_page, to_page)` – follows the `page_id` of each page's
  `next_page` link, starting from the checkpoint or `from_page`, and stops
  at the last page or at `to_page`.
- `Fetcher(options, *, transport=None, authorizer=None)` with
  `FetcherOptions(endpoint_url, version_map)` – `fetch(page)` returns one
  `CrawledObject` per listed item, downloading only protocols that are
  missing from `version_map` or have a newer version. The last object of a
  page carries a checkpoint for the next page in `response.checkpoint`.
  A `transport` takes a `Request` and returns `(body, status, headers)`;
  by default `urllib.request.urlopen` is used.
- `PublicBearerToken(token)` – adds a `Bearer` `Authorization` header.

### `webapiclients.nws`

- `API(*, gridpoint_expiration=timedelta(days=7),
  forecast_expiration=timedelta(0), host=API_HOST, get_json=None,
  now=...)` – `lookup_grid_points(lat, long)` returns `GridPoints` and
  `get_forecasts(gp)` returns a `Forecast`. Grid points are cached per
  exact latitude/longitude until `gridpoint_expiration` passes; forecasts
  are cached for their `validTimes` period, or for `forecast_expiration`
  when that is positive and shorter.
- `Forecast.period_for(when)` returns the `Period` containing `when`, or
  `None`.
- `OpaqueCloudCoverage` and `cloud_opacity_from_short_forecast(text)`.
- `parse_valid_times(value)` and `parse_iso8601_period(value)`.

### `webapiclients.papersapp`

- Records `ArticleMetadata`, `CustomField`, `CollectionOwner`,
  `Collection`, `Collections`, `ExtIds`, `File`, `ImportData`, `UserData`,
  `Item`, `Items`, `List`, `Lists`, `Token` and the `ItemType` enum, each
  with `from_dict`, `from_json`, `to_dict` and `to_json`;
  `CollectionItem` pairs an item with its collection.
- `parse_items(data)`, `parse_collections(data)` and
  `list_collections(service_url, get_json=None)`, which fetches
  `<service_url>/collections`.
- `ItemPaginator(ItemPaginatorOptions(endpoint_url, parameters))` – passes
  each page's `scroll_id` on to the next request and reports the crawl as
  done once the number of items seen reaches the page's `total`.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
from webapiclients.nws import API, cloud_opacity_from_short_forecast

api = API()
gp = api.lookup_grid_points(39.7456, -97.0892)
forecast = api.get_forecasts(gp)
for period in forecast.periods:
    print(period.name, period.opaque_cloud_coverage)

print(cloud_opacity_from_short_forecast("Mostly Sunny"))
```

The paginators share one shape: `next(None)` gives the first request, and
each decoded page passed back to `next` gives `(request, done)`:

```python
from datetime import date
from webapiclients.biorxiv import Paginator

pg = Paginator("https://api.biorxiv.org/pubs/biorxiv", date(2024, 1, 1), date(2024, 2, 1))
request, done = pg.next(None)
```

The checkpoint and crawl-state helpers accept any object with `latest()`,
returning the most recently saved bytes or nothing, and
`checkpoint(label, data)`, storing new bytes.

## What this package does not do

There is no command-line tool and no crawl loop: the paginators only build
requests, and it is up to the caller to send them (apart from `Fetcher`,
`API` and `list_collections`, which fetch through the default
`urllib` transport or one passed in), decode the pages and feed them back.
Nothing here applies request-rate limits other than the benchling
`Backoff`, stores crawled objects on disk, or builds search indexes from
them; checkpoint storage is whatever object the caller supplies.