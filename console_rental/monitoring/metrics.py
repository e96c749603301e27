from prometheus_client import Counter, Gauge, Histogram, Info
from prometheus_fastapi_instrumentator import Instrumentator

SERVICE_NAME = "console-rental"

# Business metrics
sessions_opened_total = Counter(
    "console_rental_sessions_opened_total",
    "Total number of rental sessions opened",
    ["service", "billing"],  # billing=package/cash
)

sessions_closed_total = Counter(
    "console_rental_sessions_closed_total",
    "Total number of rental sessions closed",
    ["service", "billing"],
)

session_revenue_total = Counter(
    "console_rental_session_revenue_total",
    "Sum of finalized session totals",
    ["service"],
)

session_duration_minutes = Histogram(
    "console_rental_session_duration_minutes",
    "Billed minutes of closed sessions",
    ["service"],
    buckets=[15, 30, 60, 120, 180, 240, 360, 480, 720],
)

active_sessions_gauge = Gauge(
    "console_rental_active_sessions_current",
    "Current number of active sessions",
    ["service"],
)

package_purchases_total = Counter(
    "console_rental_package_purchases_total",
    "Membership package purchases",
    ["service", "kind", "mode"],  # mode=new/top_up
)

package_minutes_deducted_total = Counter(
    "console_rental_package_minutes_deducted_total",
    "Minutes deducted from packages at settlement",
    ["service"],
)

free_drinks_consumed_total = Counter(
    "console_rental_free_drinks_consumed_total",
    "Complimentary drink units paid by package credits",
    ["service"],
)

rental_fee_overrides_total = Counter(
    "console_rental_rental_fee_overrides_total",
    "Manual rental fee overrides applied at close",
    ["service", "role"],
)

rental_fee_override_delta_total = Counter(
    "console_rental_rental_fee_override_delta_total",
    "Calculated fee minus override, summed (positive = revenue given away)",
    ["service"],
)

ticks_total = Counter(
    "console_rental_ticks_total",
    "Live display recomputations",
    ["service", "outcome"],  # outcome=ticked/skipped/failed
)

engine_errors_total = Counter(
    "console_rental_engine_errors_total",
    "Engine operation errors by kind",
    ["service", "error_type"],
)

# Application info
app_info = Info("console_rental_app_info", "Application information")


def setup_instrumentator() -> Instrumentator:
    return Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_respect_env_var=False,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/api/v1/health"],
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    )


def init_app_info(version: str = "1.0.0"):
    app_info.info({"version": version, "service": SERVICE_NAME, "component": "api"})


class MetricsCollector:
    SERVICE_NAME = SERVICE_NAME

    @staticmethod
    def record_session_opened(membership_backed: bool):
        billing = "package" if membership_backed else "cash"
        sessions_opened_total.labels(service=MetricsCollector.SERVICE_NAME, billing=billing).inc()
        active_sessions_gauge.labels(service=MetricsCollector.SERVICE_NAME).inc()

    @staticmethod
    def record_session_closed(membership_backed: bool, total_price: int, minutes: int):
        billing = "package" if membership_backed else "cash"
        sessions_closed_total.labels(service=MetricsCollector.SERVICE_NAME, billing=billing).inc()
        session_revenue_total.labels(service=MetricsCollector.SERVICE_NAME).inc(total_price)
        session_duration_minutes.labels(service=MetricsCollector.SERVICE_NAME).observe(minutes)
        active_sessions_gauge.labels(service=MetricsCollector.SERVICE_NAME).dec()

    @staticmethod
    def record_package_purchase(kind: str, is_top_up: bool):
        mode = "top_up" if is_top_up else "new"
        package_purchases_total.labels(
            service=MetricsCollector.SERVICE_NAME, kind=kind, mode=mode
        ).inc()

    @staticmethod
    def record_settlement(minutes_deducted: int, drinks_consumed: int):
        package_minutes_deducted_total.labels(service=MetricsCollector.SERVICE_NAME).inc(
            minutes_deducted
        )
        free_drinks_consumed_total.labels(service=MetricsCollector.SERVICE_NAME).inc(
            drinks_consumed
        )

    @staticmethod
    def record_override(role: str, calculated: int, override: int):
        rental_fee_overrides_total.labels(service=MetricsCollector.SERVICE_NAME, role=role).inc()
        delta = calculated - override
        if delta > 0:
            rental_fee_override_delta_total.labels(service=MetricsCollector.SERVICE_NAME).inc(delta)

    @staticmethod
    def record_tick(outcome: str, count: int = 1):
        if count > 0:
            ticks_total.labels(service=MetricsCollector.SERVICE_NAME, outcome=outcome).inc(count)

    @staticmethod
    def record_engine_error(error_type: str):
        engine_errors_total.labels(
            service=MetricsCollector.SERVICE_NAME, error_type=error_type
        ).inc()
