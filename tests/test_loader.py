"""Unit tests for rail_dashboard/loader.py and config.setup_logging."""

import io
import logging
from unittest.mock import patch

import numpy as np
import pandas as pd
import pytest

from rail_dashboard import config
from rail_dashboard.errors import DataLoadFailure
from rail_dashboard.journeys import delay_bucket_series
from rail_dashboard.loader import (
    RailDataLoader,
    RowStore,
    generate_sample_journeys,
    load_geojson,
    parse_number,
)

JOURNEYS_CSV = """Date of Journey,Departure Time,Arrival Time,Actual Arrival Time,Departure Station,Arrival Destination,Journey Status,Ticket Class,Ticket Type,Railcard,Price,Refund Request,Reason for Delay
2024-01-15,06:05,07:00,07:00,London Kings Cross,York,On Time,Standard,Advance,,12.50,No,
2024-01-20,17:10,18:00,18:20,York,London Kings Cross,Delayed,First Class,Anytime,Adult,n/a,Yes,Signal Failure
"""

OPERATORS_CSV = """Country,Operator,Punctuality (%),Cancellation Rate (%),Ticket Price (€/km)
 Germany ,DB,70.5,4.5,0.18
UK,Avanti,n/a,3.0,0.30
"""


@pytest.fixture
def journeys_csv(tmp_path):
    path = tmp_path / "railway.csv"
    path.write_text(JOURNEYS_CSV, encoding="utf-8")
    return path


@pytest.fixture
def operators_csv(tmp_path):
    path = tmp_path / "european_train_punctuality.csv"
    path.write_text(OPERATORS_CSV, encoding="utf-8")
    return path


class TestParseNumber:
    """Test cases for parse_number."""

    @pytest.mark.parametrize("value, expected", [
        ("12.5", 12.5), (" 3 ", 3.0), (7, 7.0), (np.float64(1.5), 1.5), ("-2", -2.0),
    ])
    def test_numbers(self, value, expected):
        assert parse_number(value) == expected

    @pytest.mark.parametrize("value", [None, "", "  ", "n/a", "abc", np.nan, "nan", True])
    def test_not_numbers(self, value):
        assert parse_number(value) is None


class TestLoadJourneys:
    """Test cases for RailDataLoader.load_journeys."""

    def test_columns_and_types(self, journeys_csv):
        df = RailDataLoader(journeys_path=journeys_csv).load_journeys()
        assert len(df) == 2
        assert "arrival_station" in df.columns
        assert df.loc[0, "price"] == pytest.approx(12.5)
        assert np.isnan(df.loc[1, "price"])
        assert df["refund_requested"].tolist() == [False, True]
        assert df.loc[0, "railcard"] == "None"
        assert df.loc[1, "departure_time"] == "17:10"

    def test_optional_columns_filled(self, tmp_path):
        path = tmp_path / "minimal.csv"
        path.write_text(
            "Departure Station,Arrival Destination,Departure Time,Date of Journey,Journey Status,Price\n"
            "York,London Kings Cross,08:00,2024-02-01,On Time,10\n",
            encoding="utf-8",
        )
        df = RailDataLoader(journeys_path=path).load_journeys()
        assert df.loc[0, "ticket_class"] == "Standard"
        assert df.loc[0, "railcard"] == "None"
        assert not df.loc[0, "refund_requested"]
        assert pd.isna(df.loc[0, "arrival_time"])

    def test_missing_file(self, tmp_path):
        with pytest.raises(DataLoadFailure) as excinfo:
            RailDataLoader(journeys_path=tmp_path / "nope.csv").load_journeys()
        assert excinfo.value.reason == "file not found"
        assert "nope.csv" in str(excinfo.value)

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("Departure Station,Price\nYork,10\n", encoding="utf-8")
        with pytest.raises(DataLoadFailure, match="missing columns") as excinfo:
            RailDataLoader(journeys_path=path).load_journeys()
        assert "journey_status" in excinfo.value.reason

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")
        with pytest.raises(DataLoadFailure, match="could not parse CSV"):
            RailDataLoader(journeys_path=path).load_journeys()

    def test_parser_error(self, journeys_csv):
        with patch("rail_dashboard.loader.pd.read_csv", side_effect=pd.errors.ParserError("bad quoting")):
            with pytest.raises(DataLoadFailure, match="bad quoting"):
                RailDataLoader(journeys_path=journeys_csv).load_journeys()

    def test_processed_export_reloads_refunds(self):
        """A processed CSV (True/False refunds) read back keeps every refund."""
        sample = generate_sample_journeys(200)
        exported = io.StringIO(sample.to_csv(index=False))
        reloaded = RailDataLoader.preprocess_journeys(pd.read_csv(exported, dtype=str))
        assert reloaded["refund_requested"].sum() == sample["refund_requested"].sum() > 0
        assert reloaded["refund_requested"].tolist() == sample["refund_requested"].tolist()

    @pytest.mark.parametrize("text, expected", [
        ("Yes", True), (" yes ", True), ("True", True), ("1", True), ("No", False), ("False", False), ("", False),
    ])
    def test_refund_flag_spellings(self, make_journeys, text, expected):
        raw = make_journeys([{"refund_requested": text}]).astype(str)
        assert bool(RailDataLoader.preprocess_journeys(raw).loc[0, "refund_requested"]) is expected

    def test_input_frame_not_mutated(self):
        raw = pd.DataFrame({
            "Departure Station": ["York"], "Arrival Destination": ["Leeds"], "Departure Time": ["08:00"],
            "Date of Journey": ["2024-02-01"], "Journey Status": ["On Time"], "Price": ["10"],
        })
        before = raw.copy()
        RailDataLoader.preprocess_journeys(raw)
        pd.testing.assert_frame_equal(raw, before)


class TestLoadOperators:
    """Test cases for RailDataLoader.load_operators."""

    def test_strips_and_coerces(self, operators_csv):
        df = RailDataLoader(operators_path=operators_csv).load_operators()
        assert df["country"].tolist() == ["Germany", "UK"]
        assert df.loc[0, "punctuality"] == pytest.approx(70.5)
        assert np.isnan(df.loc[1, "punctuality"])
        # scores absent from the file are added as NaN
        assert df["cycling_score"].isna().all()
        assert df["ticket_price_per_km"].dtype == float


class TestRowStore:
    """Test cases for RowStore."""

    def test_load_both(self, journeys_csv, operators_csv):
        store = RowStore.load(RailDataLoader(journeys_csv, operators_csv))
        assert store.errors == {}
        assert len(store.frame("journeys")) == 2
        assert len(store.frame("operators")) == 2

    def test_one_failure_does_not_block_the_other(self, journeys_csv, tmp_path, caplog):
        loader = RailDataLoader(journeys_csv, tmp_path / "missing.csv")
        with caplog.at_level(logging.ERROR, logger="rail_dashboard.loader"):
            store = RowStore.load(loader)
        assert set(store.errors) == {"operators"}
        assert len(store.frame("journeys")) == 2
        with pytest.raises(DataLoadFailure):
            store.frame("operators")
        assert "missing.csv" in caplog.text

    def test_patched_failure(self, journeys_csv):
        failure = DataLoadFailure("operators.csv", "disk error")
        with patch.object(RailDataLoader, "load_operators", side_effect=failure):
            store = RowStore.load(RailDataLoader(journeys_csv))
        assert store.errors["operators"] is failure

    def test_frame_not_loaded(self):
        with pytest.raises(DataLoadFailure, match="dataset not loaded"):
            RowStore().frame("journeys")


class TestLoadGeojson:
    """Test cases for load_geojson."""

    def test_valid(self, tmp_path):
        path = tmp_path / "europe.geojson"
        path.write_text('{"type": "FeatureCollection", "features": []}', encoding="utf-8")
        assert load_geojson(path)["type"] == "FeatureCollection"

    def test_invalid(self, tmp_path):
        path = tmp_path / "europe.geojson"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(DataLoadFailure, match="invalid GeoJSON"):
            load_geojson(path)

    def test_missing(self, tmp_path):
        with pytest.raises(DataLoadFailure, match="file not found"):
            load_geojson(tmp_path / "none.geojson")


class TestSampleJourneys:
    """Test cases for generate_sample_journeys."""

    def test_deterministic(self):
        pd.testing.assert_frame_equal(generate_sample_journeys(50, seed=1), generate_sample_journeys(50, seed=1))

    def test_shape_and_categories(self):
        df = generate_sample_journeys(200)
        assert len(df) == 200
        assert set(df["journey_status"]) <= set(config.JOURNEY_STATUSES)
        assert set(df["ticket_type"]) <= set(config.TICKET_TYPES)
        assert (df["price"] >= 1).all()

    def test_delayed_rows_have_a_bucket(self):
        df = generate_sample_journeys(200)
        delayed = df["journey_status"].eq("Delayed")
        assert delay_bucket_series(df)[delayed].notna().all()
        assert not df.loc[df["journey_status"].eq("On Time"), "refund_requested"].any()


class TestSetupLogging:
    """Test cases for config.setup_logging."""

    def test_configures_root_logger(self):
        with patch("rail_dashboard.config.logging.basicConfig") as basic_config:
            config.setup_logging("DEBUG")
        kwargs = basic_config.call_args.kwargs
        assert kwargs["level"] == "DEBUG"
        assert kwargs["format"] == "%(levelname)s: %(message)s"
