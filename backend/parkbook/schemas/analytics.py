"""Company analytics response schemas."""

from datetime import datetime
from typing import Dict, List

from ..services.analytics_service import CompanyStats, DetailedReport, LiveOccupancy, MonthlyRevenue
from .base import Money, StandardizedModel
from .booking import BookingResponse


class LotBookingBreakdown(StandardizedModel):
    parking_lot_id: str
    name: str
    location: str
    total_bookings: int
    successful_bookings: int
    revenue: Money


class LotOccupancyResponse(StandardizedModel):
    parking_lot_id: str
    name: str
    total_spots: int
    occupied_spots: int
    available_spots: int


class OccupancyResponse(StandardizedModel):
    total_spots: int
    occupied_spots: int
    available_spots: int
    occupancy_percentage: int
    lots: List[LotOccupancyResponse]

    @classmethod
    def from_occupancy(cls, occupancy: LiveOccupancy) -> "OccupancyResponse":
        return cls(
            total_spots=occupancy.total_spots,
            occupied_spots=occupancy.occupied_spots,
            available_spots=occupancy.available_spots,
            occupancy_percentage=occupancy.occupancy_percentage,
            lots=[
                LotOccupancyResponse(
                    parking_lot_id=lot.parking_lot_id,
                    name=lot.name,
                    total_spots=lot.total_spots,
                    occupied_spots=lot.occupied_spots,
                    available_spots=lot.available_spots,
                )
                for lot in occupancy.lots
            ],
        )


class CompanyStatsResponse(StandardizedModel):
    total_parking_lots: int
    total_bookings: int
    successful_bookings: int
    total_revenue: Money
    bookings_by_status: Dict[str, int]
    bookings_by_parking_lot: List[LotBookingBreakdown]
    recent_bookings: List[BookingResponse]
    occupancy: OccupancyResponse

    @classmethod
    def from_stats(cls, stats: CompanyStats) -> "CompanyStatsResponse":
        return cls(
            total_parking_lots=stats.total_parking_lots,
            total_bookings=stats.total_bookings,
            successful_bookings=stats.successful_bookings,
            total_revenue=stats.total_revenue,
            bookings_by_status=stats.bookings_by_status,
            bookings_by_parking_lot=[
                LotBookingBreakdown(**row) for row in stats.bookings_by_parking_lot
            ],
            recent_bookings=[BookingResponse.from_view(v) for v in stats.recent_bookings],
            occupancy=OccupancyResponse.from_occupancy(stats.occupancy),
        )


class MonthlyRevenueResponse(StandardizedModel):
    year: int
    month: int
    label: str
    revenue: Money
    bookings: int


class RevenueChartResponse(StandardizedModel):
    data: List[MonthlyRevenueResponse]

    @classmethod
    def from_months(cls, months: List[MonthlyRevenue]) -> "RevenueChartResponse":
        return cls(
            data=[
                MonthlyRevenueResponse(
                    year=m.year, month=m.month, label=m.label, revenue=m.revenue, bookings=m.bookings
                )
                for m in months
            ]
        )


class RevenueSummary(StandardizedModel):
    total: Money
    daily_average: Money
    by_payment_status: Dict[str, Money]


class BookingVolumeSummary(StandardizedModel):
    total: int
    daily_average: float
    by_status: Dict[str, int]
    average_duration_hours: float


class PeakHourResponse(StandardizedModel):
    hour: int
    bookings: int


class TopCustomerResponse(StandardizedModel):
    booked_by_id: str
    total_bookings: int
    total_revenue: Money


class DetailedReportResponse(StandardizedModel):
    start_date: datetime
    end_date: datetime
    days: int
    revenue: RevenueSummary
    bookings: BookingVolumeSummary
    peak_hours: List[PeakHourResponse]
    top_customers: List[TopCustomerResponse]

    @classmethod
    def from_report(cls, report: DetailedReport) -> "DetailedReportResponse":
        return cls(
            start_date=report.start_date,
            end_date=report.end_date,
            days=report.days,
            revenue=RevenueSummary(
                total=report.total_revenue,
                daily_average=report.daily_revenue,
                by_payment_status=report.revenue_by_payment_status,
            ),
            bookings=BookingVolumeSummary(
                total=report.total_bookings,
                daily_average=report.daily_bookings,
                by_status=report.bookings_by_status,
                average_duration_hours=report.average_duration_hours,
            ),
            peak_hours=[PeakHourResponse(hour=p.hour, bookings=p.bookings) for p in report.peak_hours],
            top_customers=[
                TopCustomerResponse(
                    booked_by_id=c.booked_by_id,
                    total_bookings=c.total_bookings,
                    total_revenue=c.total_revenue,
                )
                for c in report.top_customers
            ],
        )
