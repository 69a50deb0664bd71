"""Unit tests for rail_dashboard/operators.py."""

import numpy as np
import pandas as pd
import pytest

from rail_dashboard import config
from rail_dashboard import operators


class TestJointCountries:
    """Test cases for the UK/France duplication rule."""

    def test_expand(self, operators_df):
        """A joint row becomes one UK row and one France row."""
        expanded = operators.expand_joint_countries(operators_df)
        assert len(expanded) == len(operators_df) + 1
        joint = expanded[expanded["operator"] == "Eurostar"]
        assert joint["country"].tolist() == ["UK", "France"]
        assert (joint["source_country"] == "UK/France").all()

    def test_input_untouched(self, operators_df):
        before = operators_df.copy()
        operators.expand_joint_countries(operators_df)
        pd.testing.assert_frame_equal(operators_df, before)


class TestCountryAverages:
    """Test cases for country_averages."""

    def test_example(self):
        """Two UK operators at 80 and 90 average 85; the best is 90."""
        rows = pd.DataFrame({
            "country": ["UK", "UK"],
            "operator": ["A", "B"],
            "punctuality": [80.0, 90.0],
            "cancellation_rate": [2.0, 4.0],
            "ticket_price_per_km": [0.2, 0.3],
        })
        uk = operators.country_averages(rows)["UK"]
        assert uk.avg_punctuality == 85
        assert uk.best_operator.punctuality == 90
        assert uk.best_operator.name == "B"
        assert uk.operator_count == 2

    def test_joint_row_in_both_countries(self, operators_df):
        """The joint operator counts in UK and France, never as its own key."""
        summaries = operators.country_averages(operators_df)
        assert set(summaries) == {"UK", "France", "Germany", "Switzerland"}
        assert summaries["UK"].avg_punctuality == pytest.approx((80 + 90 + 92) / 3)
        assert summaries["UK"].operator_count == 3
        assert summaries["France"].avg_punctuality == pytest.approx(88.0)
        assert summaries["France"].best_operator.name == "Eurostar"

    def test_means_and_best(self, operators_df):
        germany = operators.country_averages(operators_df)["Germany"]
        assert germany.avg_punctuality == pytest.approx(73.0)
        assert germany.avg_cancellation == pytest.approx(5.0)
        assert germany.avg_price == pytest.approx(0.14)
        assert germany.best_operator == operators.OperatorScore("FlixTrain", 76.0)

    def test_tie_goes_to_first_row(self):
        rows = pd.DataFrame({
            "country": ["Italy", "Italy"],
            "operator": ["Trenitalia", "Italo"],
            "punctuality": [88.0, 88.0],
            "cancellation_rate": [1.0, 1.0],
            "ticket_price_per_km": [0.1, 0.1],
        })
        assert operators.country_averages(rows)["Italy"].best_operator.name == "Trenitalia"

    def test_missing_country_dropped(self, operators_df):
        rows = pd.concat([operators_df, pd.DataFrame({"country": [np.nan], "operator": ["Ghost"],
                                                      "punctuality": [10.0]})], ignore_index=True)
        summaries = operators.country_averages(rows)
        assert set(summaries) == {"UK", "France", "Germany", "Switzerland"}

    def test_country_table(self, operators_df):
        table = operators.country_table(operators_df)
        assert table.loc["Switzerland", "best_operator"] == "SBB"
        assert table.loc["Germany", "operator_count"] == 2


class TestUkEuGap:
    """Test cases for uk_eu_gap."""

    def test_gap_excludes_joint_rows_from_eu(self, operators_df):
        """EU average leaves out UK rows and both copies of the joint row."""
        gap = operators.uk_eu_gap(operators_df)
        assert gap.uk_avg == pytest.approx((80 + 90 + 92) / 3)
        assert gap.eu_avg == pytest.approx((84 + 70 + 76 + 95) / 4)
        assert gap.gap == pytest.approx(gap.uk_avg - gap.eu_avg)

    def test_no_uk_rows(self, operators_df):
        gap = operators.uk_eu_gap(operators_df[operators_df["country"] == "Germany"])
        assert gap.uk_avg is None
        assert gap.gap is None
        assert gap.eu_avg == pytest.approx(73.0)


class TestBands:
    """Test cases for the shared threshold colour scales."""

    @pytest.mark.parametrize("value, band", [
        (60, 0), (74.9, 0), (75, 1), (79.99, 1), (80, 2), (84.9, 2), (85, 3), (90, 3), (99, 3),
    ])
    def test_punctuality_band(self, value, band):
        assert operators.punctuality_band(value) == band

    @pytest.mark.parametrize("value", [None, np.nan])
    def test_punctuality_band_missing(self, value):
        assert operators.punctuality_band(value) is None
        assert operators.band_color(operators.punctuality_band(value)) == config.NO_DATA_COLOR

    def test_band_colors_ascend(self):
        assert [operators.band_color(b) for b in range(4)] == config.BAND_COLORS

    @pytest.mark.parametrize("value, band", [(1.0, 0), (2.0, 1), (3.5, 2), (4.5, 3), (5.5, 3)])
    def test_cancellation_band(self, value, band):
        assert operators.cancellation_band(value) == band

    @pytest.mark.parametrize("value, status", [
        (95, "Excellent"), (90, "Excellent"), (85, "Good"), (80, "Average"), (79.9, "Needs Improvement"),
        (None, "No Data"),
    ])
    def test_performance_status(self, value, status):
        assert operators.performance_status(value) == status

    @pytest.mark.parametrize("value, band", [("87.5", 3), (" 76 ", 1), ("n/a", None)])
    def test_band_reads_text(self, value, band):
        """Raw CSV text is parsed before banding."""
        assert operators.punctuality_band(value) == band

    @pytest.mark.parametrize("value, status", [("92", "Excellent"), ("n/a", "No Data"), ("", "No Data")])
    def test_performance_status_reads_text(self, value, status):
        assert operators.performance_status(value) == status


class TestServiceScore:
    """Test cases for service_score."""

    def test_average_of_operator_means(self, operators_df):
        uk = operators_df[operators_df["country"] == "UK"]
        assert operators.service_score(uk) == pytest.approx(6.25)

    def test_missing_score_counts_as_zero(self, operators_df):
        flix = operators_df[operators_df["operator"] == "FlixTrain"]
        assert operators.service_score(flix) == pytest.approx(3.0)

    def test_empty_group(self, operators_df):
        assert operators.service_score(operators_df.iloc[0:0]) is None


class TestRankings:
    """Test cases for the ranking helpers."""

    def test_top_countries(self, operators_df):
        assert list(operators.top_countries(operators_df, n=2).index) == ["Switzerland", "France"]

    def test_cancellation_ranking_skips_joint_rows(self, operators_df):
        ranking = operators.cancellation_ranking(operators_df)
        assert "UK/France" not in ranking.index
        assert list(ranking.index) == ["Germany", "UK", "France", "Switzerland"]
        assert ranking["UK"] == pytest.approx(2.5)

    def test_cancellation_comment(self):
        assert operators.cancellation_comment("Sweden") == "Severe weather conditions"
        assert operators.cancellation_comment("Austria") == "Multiple factors"

    def test_lowest_punctuality_grid(self, operators_df):
        grid = operators.lowest_punctuality_grid(operators_df, n=2)
        assert list(grid.index) == ["UK", "Germany", "France"]
        assert list(grid.columns) == operators.GRID_COLUMNS
        assert grid.loc["Germany", "cycling_score"] == pytest.approx(4.5)

    def test_price_punctuality_averages(self, operators_df):
        averages = operators.price_punctuality_averages(operators_df)
        assert averages.loc["UK", "ticket_price_per_km"] == pytest.approx(0.30)
        assert averages.loc["EU", "ticket_price_per_km"] == pytest.approx(0.19)
        assert averages.loc["EU", "punctuality"] == pytest.approx(81.25)


class TestServiceRadar:
    """Test cases for service_radar."""

    def test_normalised_profiles(self, operators_df):
        radar = operators.service_radar(operators_df)
        assert list(radar.columns) == ["UK", "EU"]
        assert radar.loc["Punctuality", "UK"] == pytest.approx((87 + 1 / 3 - 60) / 40)
        assert radar.loc["Ticket Price", "UK"] == pytest.approx(0.2)
        assert radar.loc["Ticket Price", "EU"] == pytest.approx(0.64)
        assert radar.loc["Compensation", "UK"] == pytest.approx(0.7)
        assert radar.loc["Compensation", "EU"] == pytest.approx(0.6)

    def test_flat_prices_do_not_divide_by_zero(self, operators_df):
        rows = operators_df.assign(ticket_price_per_km=0.2)
        radar = operators.service_radar(rows)
        assert radar.loc["Ticket Price"].tolist() == [0.0, 0.0]
        assert not radar.isna().any().any()


class TestKeyInsights:
    """Test cases for key_insights."""

    def test_punctual_expensive_country(self, operators_df):
        summary = operators.country_averages(operators_df)["Switzerland"]
        assert operators.key_insights("Switzerland", summary) == [
            "Demonstrates exceptional punctuality performance",
            "Maintains high reliability with low cancellation rates",
            "27% higher than average ticket prices",
        ]

    def test_below_benchmark(self, operators_df):
        summary = operators.country_averages(operators_df)["Germany"]
        assert operators.key_insights("Germany", summary) == [
            "Shows potential for punctuality improvement",
            "9.8% below EU punctuality benchmark",
            "Competitive pricing structure",
        ]

    def test_at_most_three(self, operators_df):
        for country, summary in operators.country_averages(operators_df).items():
            assert len(operators.key_insights(country, summary)) <= 3


class TestGeojsonCountry:
    """Test cases for mapping map features to dataset countries."""

    @pytest.mark.parametrize("name, country", [
        ("United Kingdom", "UK"), ("England", "UK"), ("Czech Republic", "Czechia"), ("France", "France"),
    ])
    def test_names(self, name, country):
        assert operators.geojson_country({"properties": {"NAME": name}}) == country

    def test_no_properties(self):
        assert operators.geojson_country({"type": "Feature"}) is None
        assert operators.geojson_country({"properties": None}) is None
