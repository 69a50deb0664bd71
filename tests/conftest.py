"""
Shared fixtures: small journey and operator frames with hand-checked values.

Frames use the internal snake_case column names produced by the loader.
"""

import numpy as np
import pandas as pd
import pytest

JOURNEY_DEFAULTS = {
    "date_of_journey": "2024-01-15",
    "departure_time": "10:00",
    "arrival_time": "11:00",
    "actual_arrival_time": "11:00",
    "departure_station": "London Kings Cross",
    "arrival_station": "York",
    "journey_status": "On Time",
    "ticket_class": "Standard",
    "ticket_type": "Advance",
    "railcard": "None",
    "price": 10.0,
    "refund_requested": False,
    "reason_for_delay": None,
}


@pytest.fixture
def make_journeys():
    """Build a journeys frame from partial records; missing fields take JOURNEY_DEFAULTS."""
    def _make(records):
        return pd.DataFrame([{**JOURNEY_DEFAULTS, **record} for record in records])
    return _make


@pytest.fixture
def journeys_df(make_journeys):
    """Eight journeys covering every status, an overnight delay and malformed fields."""
    return make_journeys([
        # 0: on time, morning peak
        {"date_of_journey": "2024-01-15", "departure_time": "06:05", "arrival_time": "07:00",
         "actual_arrival_time": "07:00"},
        # 1: 20 min late, refunded
        {"date_of_journey": "2024-01-20", "departure_time": "06:10", "arrival_time": "08:00",
         "actual_arrival_time": "08:20", "journey_status": "Delayed", "ticket_type": "Off-Peak",
         "railcard": "Adult", "price": 20.0, "refund_requested": True, "reason_for_delay": "Signal Failure"},
        # 2: 3 min late, first class
        {"date_of_journey": "2024-02-03", "departure_time": "06:20", "arrival_time": "09:00",
         "actual_arrival_time": "09:03", "departure_station": "Manchester Piccadilly",
         "arrival_station": "Liverpool Lime Street", "journey_status": "Delayed", "ticket_class": "First Class",
         "ticket_type": "Anytime", "price": 30.0, "reason_for_delay": "Weather Conditions"},
        # 3: due 23:50, arrived 00:05
        {"date_of_journey": "2024-02-14", "departure_time": "17:30", "arrival_time": "23:50",
         "actual_arrival_time": "00:05", "departure_station": "York", "arrival_station": "London Kings Cross",
         "journey_status": "Delayed", "railcard": "Senior", "price": 40.0, "refund_requested": True,
         "reason_for_delay": "Staff Shortage"},
        # 4: cancelled, no actual arrival
        {"date_of_journey": "2024-03-02", "departure_time": "12:00", "arrival_time": "13:00",
         "actual_arrival_time": np.nan, "departure_station": "York", "arrival_station": "Manchester Piccadilly",
         "journey_status": "Cancelled", "ticket_type": "Anytime", "railcard": "Disabled", "price": 15.0,
         "refund_requested": True, "reason_for_delay": "Technical Issue"},
        # 5: unreadable price
        {"date_of_journey": "2024-03-05", "departure_time": "20:00", "arrival_time": "21:00",
         "actual_arrival_time": "21:00", "departure_station": "Liverpool Lime Street", "ticket_type": "Off-Peak",
         "price": np.nan},
        # 6: no departure time, no arrival station
        {"date_of_journey": "2024-03-15", "departure_time": "", "arrival_time": "10:00",
         "actual_arrival_time": "10:00", "departure_station": "Bristol Temple Meads", "arrival_station": np.nan,
         "journey_status": "Cancelled", "ticket_class": "First Class", "price": 5.0,
         "reason_for_delay": "signal problem"},
        # 7: no date, 90 min late
        {"date_of_journey": np.nan, "departure_time": "07:45", "arrival_time": "09:00",
         "actual_arrival_time": "10:30", "journey_status": "Delayed", "price": 25.0, "reason_for_delay": "Traffic"},
    ])


@pytest.fixture
def operators_df():
    """Seven operators across four countries, including one joint UK/France operator."""
    columns = [
        "country", "operator", "punctuality", "cancellation_rate", "ticket_price_per_km",
        "compensation_score", "booking_score", "night_train_score", "cycling_score",
    ]
    rows = [
        ["UK", "Avanti", 80.0, 3.0, 0.30, 6, 7, 5, 6],
        ["UK", "LNER", 90.0, 2.0, 0.25, 7, 8, 4, 7],
        ["UK/France", "Eurostar", 92.0, 1.0, 0.35, 8, 9, 2, 5],
        ["France", "SNCF", 84.0, 2.5, 0.20, 7, 7, 8, 8],
        ["Germany", "DB", 70.0, 4.5, 0.18, 5, 6, 6, 9],
        ["Germany", "FlixTrain", 76.0, 5.5, 0.10, 4, 5, 3, np.nan],
        ["Switzerland", "SBB", 95.0, 0.5, 0.28, 8, 9, 7, 8],
    ]
    return pd.DataFrame(rows, columns=columns)
