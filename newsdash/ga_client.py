"""Thin call-through to the GA4 Data API using the operator's OAuth token."""

from dataclasses import dataclass, field
import logging
from typing import List, Optional, Sequence, Tuple

from google.analytics.data_v1beta import BetaAnalyticsDataClient
from google.analytics.data_v1beta.types import (
    DateRange,
    Dimension,
    Filter,
    FilterExpression,
    FilterExpressionList,
    GetMetadataRequest,
    Metric,
    OrderBy,
    RunRealtimeReportRequest,
    RunReportRequest,
)
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"


class UpstreamError(Exception):
    """Any failure talking to GA4: expired token, quota, bad request, no property."""


def _to_int(value):
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _to_float(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass
class ContainsAnyFilter:
    """OR of case-sensitive substring matches against one field."""

    field_name: str
    values: Sequence[str]

    def to_expression(self):
        return FilterExpression(
            or_group=FilterExpressionList(
                expressions=[
                    FilterExpression(
                        filter=Filter(
                            field_name=self.field_name,
                            string_filter=Filter.StringFilter(
                                match_type=Filter.StringFilter.MatchType.CONTAINS,
                                value=value,
                            ),
                        )
                    )
                    for value in self.values
                ]
            )
        )


@dataclass
class ReportRequest:
    metrics: List[str]
    dimensions: List[str] = field(default_factory=list)
    date_range: Optional[Tuple[str, str]] = None  # None for realtime queries
    dimension_filter: Optional[ContainsAnyFilter] = None
    order_by: Optional[Tuple[str, bool]] = None  # (metric, desc)
    limit: Optional[int] = None

    def _common_kwargs(self, property_name):
        kwargs = {
            "property": property_name,
            "metrics": [Metric(name=m) for m in self.metrics],
            "dimensions": [Dimension(name=d) for d in self.dimensions],
        }
        if self.dimension_filter is not None:
            kwargs["dimension_filter"] = self.dimension_filter.to_expression()
        if self.order_by is not None:
            metric_name, desc = self.order_by
            kwargs["order_bys"] = [
                OrderBy(metric=OrderBy.MetricOrderBy(metric_name=metric_name), desc=desc)
            ]
        if self.limit:
            kwargs["limit"] = self.limit
        return kwargs

    def to_report_request(self, property_name):
        start_date, end_date = self.date_range or ("today", "today")
        return RunReportRequest(
            date_ranges=[DateRange(start_date=start_date, end_date=end_date)],
            **self._common_kwargs(property_name),
        )

    def to_realtime_request(self, property_name):
        return RunRealtimeReportRequest(**self._common_kwargs(property_name))


@dataclass
class ReportRow:
    dimension_values: List[str]
    metric_values: List[str]

    @classmethod
    def from_api(cls, row):
        return cls(
            dimension_values=[v.value for v in row.dimension_values],
            metric_values=[v.value for v in row.metric_values],
        )

    def dimension(self, index=0, default=""):
        if index < len(self.dimension_values):
            return self.dimension_values[index]
        return default

    def metric_int(self, index=0):
        if index < len(self.metric_values):
            return _to_int(self.metric_values[index])
        return 0

    def metric_float(self, index=0):
        if index < len(self.metric_values):
            return _to_float(self.metric_values[index])
        return 0.0


@dataclass
class DimensionInfo:
    api_name: str
    ui_name: str = ""
    description: str = ""

    @property
    def is_custom(self):
        return bool(self.api_name) and self.api_name.startswith("custom")

    def to_json(self):
        return {"apiName": self.api_name, "uiName": self.ui_name, "description": self.description}


class ReportClient:
    """Issues GA4 reports on behalf of one signed-in operator.

    Built per request from the session credential; never stores the token
    anywhere else.
    """

    def __init__(self, credential, settings, client=None):
        self._property = settings.property_name
        if client is None:
            creds = Credentials(
                token=credential.access_token,
                refresh_token=credential.refresh_token,
                client_id=settings.google_client_id,
                client_secret=settings.google_client_secret,
                token_uri=TOKEN_URI,
            )
            client = BetaAnalyticsDataClient(credentials=creds)
        self._client = client

    def _require_property(self):
        if not self._property:
            raise UpstreamError("GA4_PROPERTY_ID is not set")
        return self._property

    def _call(self, name, method, request):
        try:
            return method(request=request)
        except (GoogleAPIError, GoogleAuthError) as e:
            logger.error("GA4 %s failed: %s", name, e)
            raise UpstreamError(str(e)) from e

    def run_report(self, request: ReportRequest) -> List[ReportRow]:
        rr = request.to_report_request(self._require_property())
        resp = self._call("runReport", self._client.run_report, rr)
        return [ReportRow.from_api(r) for r in resp.rows]

    def run_realtime_report(self, request: ReportRequest) -> List[ReportRow]:
        rr = request.to_realtime_request(self._require_property())
        resp = self._call("runRealtimeReport", self._client.run_realtime_report, rr)
        return [ReportRow.from_api(r) for r in resp.rows]

    def get_metadata(self) -> List[DimensionInfo]:
        name = f"{self._require_property()}/metadata"
        meta = self._call("getMetadata", self._client.get_metadata, GetMetadataRequest(name=name))
        return [
            DimensionInfo(api_name=d.api_name, ui_name=d.ui_name, description=d.description)
            for d in meta.dimensions
        ]

    def custom_dimensions(self) -> List[DimensionInfo]:
        return [d for d in self.get_metadata() if d.is_custom]
