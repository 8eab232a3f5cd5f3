"""Bucketed netflow series and top-N aggregate matrices."""
from concurrent.futures import ThreadPoolExecutor

from nfreport.core.app_state import add_app_log
from nfreport.services.netflow.errors import QueryCancelled, QueryFailure
from nfreport.services.netflow.filters import FlowFilter, restrict_filter
from nfreport.services.netflow.intervals import iter_buckets
from nfreport.services.netflow.models import AggregateKey, Unit
from nfreport.services.netflow.netflow import get_stats, get_summary
from nfreport.services.shared.observability import get_logger, instrument_service

_logger = get_logger("aggregation")


def _total_for_bucket(nfdump, bucket, flow_filter, unit):
    summary = get_summary(nfdump, bucket.start, bucket.end, flow_filter)
    if summary is None:
        return 0
    try:
        return unit.convert(summary.totalbytes, bucket.duration)
    except QueryFailure as e:
        add_app_log(f"Bucket {bucket.start}-{bucket.end}: {e}", "WARN")
        return 0


def _values_for_bucket(nfdump, bucket, flow_filter, aggregate, max_aggregates, unit, sources, hostnames):
    values = dict.fromkeys(sources, 0)
    rows = get_stats(
        nfdump, bucket.start, bucket.end, flow_filter, aggregate, max_aggregates, unit,
        hostnames=hostnames,
    )
    for row in rows:
        # Keys outside the report-wide top N are dropped
        if row.key in values:
            values[row.key] = row.value
    return values


def _discover_sources(nfdump, start, end, flow_filter, aggregate, max_aggregates, hostnames):
    rows = get_stats(nfdump, start, end, flow_filter, aggregate, max_aggregates, Unit.BYTES)
    # Largest first, as nfdump ranked them
    rows = sorted(rows, key=lambda row: row.bytes, reverse=True)
    raw_keys = list(dict.fromkeys(row.key for row in rows))
    if hostnames is not None and aggregate.is_ip:
        names = [hostnames.resolve(key) for key in raw_keys]
    else:
        names = raw_keys
    return raw_keys, dict.fromkeys(names, 1)


def _run_buckets(buckets, task, workers, cancel_event):
    def guarded(bucket):
        if cancel_event is not None and cancel_event.is_set():
            raise QueryCancelled(f"report cancelled before bucket {bucket.start}-{bucket.end}")
        return bucket.end, task(bucket)

    if workers <= 1 or len(buckets) <= 1:
        return dict(guarded(bucket) for bucket in buckets)

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(guarded, bucket) for bucket in buckets]
        try:
            return dict(future.result() for future in futures)
        except QueryCancelled:
            for future in futures:
                future.cancel()
            raise


@instrument_service("get_data")
def get_data(
    nfdump,
    start,
    end,
    resolution,
    flow_filter,
    aggregate,
    max_aggregates,
    unit,
    hostnames=None,
    workers=1,
    cancel_event=None,
):
    """Build the time series for a report.

    Without an aggregate the result maps each bucket end to
    ``{"data": total}``. With one, the top ``max_aggregates`` keys over the
    whole range are fixed first and the result is
    ``{"sources": {key: 1}, "data": {bucket_end: {key: value}}}`` with every
    key present (0 when missing) in every bucket. An empty dict means there
    is nothing to draw.

    ``hostnames`` (a HostnameCache) turns IP keys into host names.
    ``workers`` > 1 queries buckets in parallel; ``cancel_event`` is checked
    before every bucket and raises QueryCancelled once set.
    """
    flow_filter = flow_filter or FlowFilter()
    aggregate = AggregateKey.parse(aggregate)
    unit = Unit.parse(unit)
    buckets = list(iter_buckets(start, end, resolution))
    if not buckets:
        return {}

    if aggregate is AggregateKey.NONE:
        series = _run_buckets(
            buckets,
            lambda bucket: _total_for_bucket(nfdump, bucket, flow_filter, unit),
            workers,
            cancel_event,
        )
        return {bucket_end: {"data": value} for bucket_end, value in series.items()}

    raw_keys, sources = _discover_sources(
        nfdump, start, end, flow_filter, aggregate, max_aggregates, hostnames
    )
    if not sources:
        _logger.info(f"No {aggregate.value} aggregates between {start} and {end}")
        return {}

    bucket_filter = restrict_filter(flow_filter, aggregate, raw_keys)
    data = _run_buckets(
        buckets,
        lambda bucket: _values_for_bucket(
            nfdump, bucket, bucket_filter, aggregate, max_aggregates, unit, sources, hostnames
        ),
        workers,
        cancel_event,
    )
    if not data:
        return {}
    return {"sources": sources, "data": data}
