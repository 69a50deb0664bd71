"""Dashboard configuration: data locations, fixed categories, thresholds and logging."""

import logging
import os
import sys
from pathlib import Path

# =============================================================================
# DATA
# =============================================================================

PACKAGE_DIR = Path(__file__).resolve().parent
DATA_DIR = Path(os.environ.get("RAIL_DASHBOARD_DATA_DIR", PACKAGE_DIR.parent / "data"))

JOURNEYS_CSV = DATA_DIR / "railway.csv"
OPERATORS_CSV = DATA_DIR / "european_train_punctuality.csv"
EUROPE_GEOJSON = DATA_DIR / "europe.geojson"

# Source header -> internal column name
JOURNEY_COLUMNS = {
    "Departure Station": "departure_station",
    "Arrival Destination": "arrival_station",
    "Departure Time": "departure_time",
    "Arrival Time": "arrival_time",
    "Actual Arrival Time": "actual_arrival_time",
    "Date of Journey": "date_of_journey",
    "Journey Status": "journey_status",
    "Ticket Class": "ticket_class",
    "Ticket Type": "ticket_type",
    "Railcard": "railcard",
    "Price": "price",
    "Refund Request": "refund_requested",
    "Reason for Delay": "reason_for_delay",
}

OPERATOR_COLUMNS = {
    "Country": "country",
    "Operator": "operator",
    "Punctuality (%)": "punctuality",
    "Cancellation Rate (%)": "cancellation_rate",
    "Ticket Price (€/km)": "ticket_price_per_km",
    "Compensation Policy Score (/10)": "compensation_score",
    "Booking Experience Score (/10)": "booking_score",
    "Night Train Offer Score (/10)": "night_train_score",
    "Cycling Policy Score (/10)": "cycling_score",
}

OPERATOR_NUMERIC = [
    "punctuality",
    "cancellation_rate",
    "ticket_price_per_km",
    "compensation_score",
    "booking_score",
    "night_train_score",
    "cycling_score",
]

# A joint operator row is counted once in each of these countries.
JOINT_COUNTRIES = {"UK/France": ("UK", "France")}
REFERENCE_COUNTRY = "UK"

# GeoJSON feature NAME -> operator dataset country
GEOJSON_NAMES = {
    "United Kingdom": "UK",
    "Great Britain": "UK",
    "England": "UK",
    "Britain": "UK",
    "United Kingdom of Great Britain and Northern Ireland": "UK",
    "Czech Republic": "Czechia",
}

# =============================================================================
# CATEGORIES
# =============================================================================

TICKET_CLASSES = ["Standard", "First Class"]
TICKET_TYPES = ["Advance", "Off-Peak", "Anytime"]
RAILCARDS = ["Adult", "Disabled", "Senior"]
JOURNEY_STATUSES = ["On Time", "Delayed", "Cancelled"]
REFUND_STATUSES = ["Delayed", "Cancelled"]
DELAY_REASONS = ["Signal Failure", "Staffing", "Technical Issue", "Traffic", "Weather"]
WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

# =============================================================================
# TIME WINDOWS
# =============================================================================

PEAK_MORNING = range(6, 9)    # 6-8
PEAK_EVENING = range(16, 19)  # 16-18

SLOT_MINUTES = 15
SLOT_COUNT = 12
AM_SLOT_START = "06:00"
PM_SLOT_START = "16:00"

# Delay differences beyond half a day are taken to have crossed midnight.
HALF_DAY_MINUTES = 720
DAY_MINUTES = 1440

# =============================================================================
# BUCKETS AND SCALES
# =============================================================================

# (label, lower exclusive, upper inclusive)
DELAY_BUCKET_EDGES = [
    ("<= 1 Min", 0, 1),
    ("1 - 5 Mins", 1, 5),
    ("5 - 15 Mins", 5, 15),
    ("15 - 30 Mins", 15, 30),
    ("30 - 60 Mins", 30, 60),
    ("> 60 Mins", 60, float("inf")),
]

PUNCTUALITY_THRESHOLDS = [75, 80, 85, 90]
CANCELLATION_THRESHOLDS = [2, 3, 4, 5]
BAND_COLORS = ["#b6b7d8", "#8e8fc7", "#6668b5", "#1e3a8a"]
NO_DATA_COLOR = "#e5e7eb"

# Bounds for the UK vs EU service radar
RADAR_PUNCTUALITY_RANGE = (60, 100)

SIMILARITY_FLOOR = 0.2

# Benchmarks quoted by the country detail panel
INSIGHT_EU_PUNCTUALITY = 82.8
INSIGHT_AVG_PRICE = 0.22

CANCELLATION_COMMENTS = {
    "Germany": "Infrastructure upgrades + staff shortages",
    "UK": "Weather + operational bottlenecks",
    "Sweden": "Severe weather conditions",
    "Portugal": "Infrastructure modernization",
    "UK/France": "Channel tunnel constraints",
    "Poland": "Network modernization",
    "Italy": "Regional variations",
    "France": "Industrial action impact",
}

# Dates shown in the disruption table
DISRUPTION_DATES = [
    "2024-01-02", "2024-01-18", "2024-01-23", "2024-01-28",
    "2024-02-14", "2024-02-22", "2024-02-26",
    "2024-03-02", "2024-03-05", "2024-03-07", "2024-03-15", "2024-03-27",
    "2024-04-22", "2024-04-30",
]

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.environ.get("RAIL_DASHBOARD_LOG_LEVEL", "INFO")


def setup_logging(level=LOG_LEVEL):
    """Configures basic logging."""
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
