# backend/parkbook/routes/v1/company.py
"""
Company routes - API v1

Reporting over bookings on the caller's own lots. Company role only.

Endpoints:
    GET /bookings - Booking history with filters and pagination
    GET /stats - Revenue, counts by status, per-lot breakdown and live occupancy
    GET /revenue-chart - Revenue and new bookings per month
    GET /analytics - Detailed report over a creation-date window
    GET /filters - Filter values for the company history
"""

import asyncio
from datetime import datetime
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_analytics_service, require_company
from ...core.config import settings
from ...core.constants import DEFAULT_REVENUE_CHART_MONTHS, MAX_REVENUE_CHART_MONTHS
from ...core.exceptions import DomainException
from ...domain.booking_lifecycle import BookingStatus, PaymentStatus
from ...principal import Actor
from ...schemas.analytics import (
    CompanyStatsResponse,
    DetailedReportResponse,
    RevenueChartResponse,
)
from ...schemas.booking import BookingListResponse, FilterOptionsResponse
from ...services.analytics_service import AnalyticsService
from .bookings import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["company-v1"])


@router.get("/bookings", response_model=BookingListResponse)
async def get_company_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None),
    parking_lot_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_actor: Actor = Depends(require_company),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> BookingListResponse:
    try:
        result = await asyncio.to_thread(
            analytics_service.company_history,
            current_actor,
            status=status_filter,
            payment_status=payment_status,
            parking_lot_id=parking_lot_id,
            start_date=start_date,
            end_date=end_date,
            page=page,
            limit=limit,
        )
        return BookingListResponse.from_page(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/stats", response_model=CompanyStatsResponse)
async def get_company_stats(
    current_actor: Actor = Depends(require_company),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> CompanyStatsResponse:
    try:
        stats = await asyncio.to_thread(analytics_service.company_stats, current_actor)
        return CompanyStatsResponse.from_stats(stats)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/revenue-chart", response_model=RevenueChartResponse)
async def get_revenue_chart(
    months: int = Query(DEFAULT_REVENUE_CHART_MONTHS, ge=1, le=MAX_REVENUE_CHART_MONTHS),
    current_actor: Actor = Depends(require_company),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> RevenueChartResponse:
    try:
        series = await asyncio.to_thread(analytics_service.revenue_by_month, current_actor, months)
        return RevenueChartResponse.from_months(series)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/analytics", response_model=DetailedReportResponse)
async def get_detailed_analytics(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    parking_lot_id: Optional[str] = Query(None),
    current_actor: Actor = Depends(require_company),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> DetailedReportResponse:
    """Revenue, volume, durations, peak hours and top customers for bookings made in the window."""
    try:
        report = await asyncio.to_thread(
            analytics_service.detailed_report,
            current_actor,
            start_date,
            end_date,
            parking_lot_id,
        )
        return DetailedReportResponse.from_report(report)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/filters", response_model=FilterOptionsResponse)
async def get_company_filter_options(
    current_actor: Actor = Depends(require_company),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> FilterOptionsResponse:
    try:
        options = await asyncio.to_thread(analytics_service.company_filter_options, current_actor)
        return FilterOptionsResponse.from_options(options)
    except DomainException as e:
        handle_domain_exception(e)
