"""nfdump backed netflow report services."""
from .errors import ConfigurationError, NetflowError, QueryCancelled, QueryFailure
from .filters import FlowFilter, build_filter_args, build_filter_expression, restrict_filter
from .models import AggregateKey, FlowRecord, StatRow, TrafficSummary, Unit
from .intervals import Bucket, Resolution, iter_buckets, partition
from .netflow import Nfdump, format_time_window, get_records, get_stats, get_summary
from .aggregation import get_data
from .top import TopMode, TopOrder, top_summary
from .report import ChartType, ReportContext
