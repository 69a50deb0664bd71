"""
Streamlit front end for the rail dashboard.

Run with:
    streamlit run rail_dashboard/app.py

Sidebar buttons queue a filter click in ``st.session_state``; on the next run
the click goes through ``ChartRegistry.dispatch`` and every registered chart is
redrawn from freshly filtered rows. The filter store lives in the session, so
each browser tab keeps its own selection.
"""

import logging

import matplotlib.pyplot as plt
import pandas as pd
import streamlit as st

from rail_dashboard import config, journeys, operators, similarity
from rail_dashboard.errors import DataLoadFailure
from rail_dashboard.filters import (
    ARRIVAL_PEAKS, ARRIVALS, DELAY_REFUNDS, DEPARTURE_PEAKS, DEPARTURES, PERFORMANCE, REVENUE, REVENUE_TREND,
    UNFILTERED, Dimension, FilterStore,
)
from rail_dashboard.loader import RailDataLoader, RowStore, generate_sample_journeys, load_geojson
from rail_dashboard.registry import ChartRegistry
from rail_dashboard.timebuckets import TimeBucket
from rail_dashboard.visualizer import RailVisualizer

logger = logging.getLogger(__name__)

PENDING_KEY = "pending_filter"
DATASETS = ("journeys", "operators")


# ---------- Cached data access ----------
@st.cache_data
def load_journeys(path):
    return RailDataLoader(journeys_path=path).load_journeys()


@st.cache_data
def load_operators(path):
    return RailDataLoader(operators_path=path).load_operators()


@st.cache_data
def sample_journeys(n=400):
    return generate_sample_journeys(n=n)


@st.cache_data
def load_map(path):
    return load_geojson(path)


class SessionLoader(RailDataLoader):
    """Reads through the cached loaders; an upload or the sample replaces the journeys file."""

    def __init__(self, journeys_path=None, operators_path=None, uploaded_file=None, use_sample=False):
        super().__init__(journeys_path, operators_path)
        self.uploaded_file = uploaded_file
        self.use_sample = use_sample

    def load_journeys(self):
        if self.uploaded_file is not None:
            source = getattr(self.uploaded_file, "name", "upload")
            try:
                raw = pd.read_csv(self.uploaded_file, dtype=str)
            except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
                raise DataLoadFailure(source, f"could not parse CSV ({exc})") from exc
            return self.preprocess_journeys(raw, source=source)
        if self.use_sample:
            return sample_journeys()
        return load_journeys(str(self.journeys_path))

    def load_operators(self):
        return load_operators(str(self.operators_path))


def queue_filter(dimension, value):
    st.session_state[PENDING_KEY] = (dimension, value)


def reset_filters():
    st.session_state.pop(PENDING_KEY, None)
    st.session_state.filter_store.reset()


def show(fig):
    st.pyplot(fig)
    plt.close(fig)


# ---------- Streamlit App ----------
class RailDashboardApp:
    def __init__(self):
        self.visualizer = RailVisualizer()
        if "filter_store" not in st.session_state:
            st.session_state.filter_store = FilterStore()
        self.store = st.session_state.filter_store
        self.frames = {}
        self.errors = {}
        self.slots = {}
        self.geojson = None

    # ----- data -----
    def load_data(self, use_sample, uploaded_file):
        loader = SessionLoader(uploaded_file=uploaded_file, use_sample=use_sample)
        rows = RowStore.load(loader)
        self.frames = {name: rows.frame(name) for name in DATASETS if name not in rows.errors}
        self.errors = dict(rows.errors)
        try:
            self.geojson = load_map(str(config.EUROPE_GEOJSON))
        except DataLoadFailure as exc:
            logger.warning("Map outline unavailable, showing bars instead: %s", exc)
            self.geojson = None

    # ----- layout -----
    def build_layout(self):
        tabs = st.tabs(["European Punctuality", "Peak Travel Times", "Sales Performance", "Reliability & Refunds"])
        europe, peak, sales, reliability = tabs
        with europe:
            self._error_or_slots("operators", ["country_kpis", "country_map", "country_detail", "cancellations",
                                               "price_scatter", "radar", "metric_grid", "similarity"])
        with peak:
            self._error_or_slots("journeys", ["busiest_slots", "hourly", "heatmap", "stations"])
        with sales:
            self._error_or_slots("journeys", ["sales_kpis", "revenue_trend", "revenue_by_type", "ticket_mix",
                                              "status_revenue", "routes"])
        with reliability:
            self._error_or_slots("journeys", ["reliability", "delay_refunds", "causes", "disruptions",
                                              "refund_flows", "ontime", "arrival_ontime"])

    def _error_or_slots(self, dataset, names):
        if dataset in self.errors:
            st.error(str(self.errors[dataset]))
            return
        for name in names:
            self.slots[name] = st.container()

    def register_charts(self, registry):
        charts = [
            ("country_kpis", self.render_country_kpis, UNFILTERED, "operators"),
            ("country_map", self.render_country_map, UNFILTERED, "operators"),
            ("country_detail", self.render_country_detail, UNFILTERED, "operators"),
            ("cancellations", self.render_cancellations, UNFILTERED, "operators"),
            ("price_scatter", self.render_price_scatter, UNFILTERED, "operators"),
            ("radar", self.render_radar, UNFILTERED, "operators"),
            ("metric_grid", self.render_metric_grid, UNFILTERED, "operators"),
            ("similarity", self.render_similarity, UNFILTERED, "operators"),
            ("busiest_slots", self.render_busiest_slots, DEPARTURES, "journeys"),
            ("hourly", self.render_hourly, DEPARTURES, "journeys"),
            ("heatmap", self.render_heatmap, DEPARTURES, "journeys"),
            ("departure_stations", self.render_departure_stations, DEPARTURE_PEAKS, "journeys"),
            ("arrival_stations", self.render_arrival_stations, ARRIVAL_PEAKS, "journeys"),
            ("sales_kpis", self.render_sales_kpis, REVENUE, "journeys"),
            ("revenue_trend", self.render_revenue_trend, REVENUE_TREND, "journeys"),
            ("revenue_by_type", self.render_revenue_by_type, REVENUE, "journeys"),
            ("ticket_mix", self.render_ticket_mix, DEPARTURES, "journeys"),
            ("status_revenue", self.render_status_revenue, REVENUE, "journeys"),
            ("routes", self.render_routes, REVENUE, "journeys"),
            ("reliability", self.render_reliability, PERFORMANCE, "journeys"),
            ("delay_refunds", self.render_delay_refunds, DELAY_REFUNDS, "journeys"),
            ("causes", self.render_causes, PERFORMANCE, "journeys"),
            ("disruptions", self.render_disruptions, PERFORMANCE, "journeys"),
            ("refund_flows", self.render_refund_flows, DEPARTURES, "journeys"),
            ("ontime", self.render_ontime, DEPARTURES, "journeys"),
            ("arrival_ontime", self.render_arrival_ontime, ARRIVALS, "journeys"),
        ]
        for name, render, profile, dataset in charts:
            if dataset in self.frames:
                registry.register(name, render, profile, dataset=dataset)

    # ----- sidebar -----
    def render_sidebar(self):
        state = self.store.snapshot()
        st.sidebar.subheader("Filters")
        st.sidebar.button("Reset all filters", on_click=reset_filters)
        active = state.active()
        if active:
            st.sidebar.caption(", ".join(f"{k}: {getattr(v, 'value', v)}" for k, v in active.items()))

        if "journeys" not in self.frames:
            return
        rows = self.frames["journeys"]
        top, _ = journeys.route_revenue(rows, n=5)
        groups = [
            ("Time of day", Dimension.TIME_BUCKET, [(b.value, b) for b in TimeBucket if b is not TimeBucket.ALL]),
            ("Ticket class", Dimension.TICKET_CLASS, [(c, c) for c in config.TICKET_CLASSES]),
            ("Ticket type", Dimension.TICKET_TYPE, [(t, t) for t in config.TICKET_TYPES]),
            ("Station", Dimension.STATION,
             [(s, s) for s in journeys.station_peaks(rows, "departure_station", "departure_time")["station"]]),
            ("Month", Dimension.MONTH, [(m, m) for m in journeys.monthly_journeys(rows).index]),
            ("Delay", Dimension.DELAY_BUCKET, [(label, label) for label in journeys.DELAY_BUCKET_LABELS]),
            ("Journey status", Dimension.JOURNEY_STATUS, [(s, s) for s in config.JOURNEY_STATUSES]),
            ("Delay reason", Dimension.DELAY_REASON, [(r, r) for r in config.DELAY_REASONS]),
            ("Route", Dimension.ROUTE, [(r, tuple(r.split(" to ", 1))) for r in top["route"]]),
        ]
        for title, dimension, options in groups:
            with st.sidebar.expander(title, expanded=dimension is Dimension.TIME_BUCKET):
                for label, value in options:
                    selected = state.get(dimension) == value
                    st.button(
                        label,
                        key=f"{dimension.value}:{label}",
                        type="primary" if selected else "secondary",
                        on_click=queue_filter,
                        args=(dimension, value),
                    )

    # ----- operator charts -----
    def render_country_kpis(self, rows, state):
        gap = operators.uk_eu_gap(rows)
        with self.slots["country_kpis"]:
            st.subheader("UK vs Europe")
            c1, c2, c3 = st.columns(3)
            c1.metric("EU average punctuality", "–" if gap.eu_avg is None else f"{gap.eu_avg:.1f}%")
            c2.metric("UK average punctuality", "–" if gap.uk_avg is None else f"{gap.uk_avg:.1f}%")
            c3.metric("Performance gap", "–" if gap.gap is None else f"{gap.gap:.1f}%")

    def render_country_map(self, rows, state):
        with self.slots["country_map"]:
            top_only = st.checkbox("Show top 5 countries only", value=False)
            highlight = list(operators.top_countries(rows).index) if top_only else None
            table = operators.country_table(rows)
            if self.geojson is not None:
                show(self.visualizer.plot_country_map(self.geojson, table, highlight=highlight))
            else:
                show(self.visualizer.plot_country_punctuality(table, highlight=highlight))

    def render_country_detail(self, rows, state):
        summaries = operators.country_averages(rows)
        with self.slots["country_detail"]:
            if not summaries:
                st.info("No countries available.")
                return
            countries = sorted(summaries)
            default = countries.index(config.REFERENCE_COUNTRY) if config.REFERENCE_COUNTRY in countries else 0
            country = st.selectbox("Country details", countries, index=default)
            summary = summaries[country]
            expanded = operators.expand_joint_countries(rows)
            score = operators.service_score(expanded[expanded["country"].eq(country)])
            c1, c2, c3, c4 = st.columns(4)
            c1.metric("Status", operators.performance_status(summary.avg_punctuality))
            c2.metric("Operators", summary.operator_count)
            c3.metric("Best operator", summary.best_operator.name if summary.best_operator else "–")
            c4.metric("Service score", "–" if score is None else f"{score:.1f}/10")
            for insight in operators.key_insights(country, summary):
                st.write(f"- {insight}")

    def render_cancellations(self, rows, state):
        ranking = operators.cancellation_ranking(rows)
        with self.slots["cancellations"]:
            show(self.visualizer.plot_cancellation_ranking(ranking))
            st.caption(" | ".join(f"{c}: {operators.cancellation_comment(c)}" for c in ranking.index[:4]))

    def render_price_scatter(self, rows, state):
        with self.slots["price_scatter"]:
            show(self.visualizer.plot_price_vs_punctuality(rows, operators.price_punctuality_averages(rows)))

    def render_radar(self, rows, state):
        with self.slots["radar"]:
            show(self.visualizer.plot_service_radar(operators.service_radar(rows)))

    def render_metric_grid(self, rows, state):
        with self.slots["metric_grid"]:
            show(self.visualizer.plot_metric_grid(operators.lowest_punctuality_grid(rows)))

    def render_similarity(self, rows, state):
        with self.slots["similarity"]:
            curated = st.checkbox("Use curated similarity values", value=False)
            override = similarity.DISPLAY_SIMILARITY_OVERRIDE if curated else None
            show(self.visualizer.plot_similarity(similarity.similarity_links(rows, override=override)))

    # ----- journey charts -----
    def render_busiest_slots(self, rows, state):
        with self.slots["busiest_slots"]:
            window = "PM" if state.time_bucket is TimeBucket.PM else "AM"
            st.subheader(f"Busiest Times ({window} peak)")
            show(self.visualizer.plot_busiest_slots(journeys.busiest_slots(rows, state.time_bucket)))

    def render_hourly(self, rows, state):
        with self.slots["hourly"]:
            show(self.visualizer.plot_departure_hour(journeys.hourly_departures(rows, state.time_bucket)))

    def render_heatmap(self, rows, state):
        with self.slots["heatmap"]:
            st.subheader("Heatmap of Daily Peak Hours")
            show(self.visualizer.plot_heatmap_day_hour(journeys.weekday_hour_matrix(rows, state.time_bucket)))

    def render_departure_stations(self, rows, state):
        with self.slots["stations"]:
            peaks = journeys.station_peaks(rows, "departure_station", "departure_time")
            show(self.visualizer.plot_station_peaks(peaks, "Top Departure Stations", selected=state.station))

    def render_arrival_stations(self, rows, state):
        with self.slots["stations"]:
            peaks = journeys.station_peaks(rows, "arrival_station", "arrival_time")
            show(self.visualizer.plot_station_peaks(peaks, "Top Arrival Stations", selected=state.station))

    def render_sales_kpis(self, rows, state):
        trend = journeys.journey_trend_summary(rows)
        with self.slots["sales_kpis"]:
            c1, c2, c3, c4 = st.columns(4)
            c1.metric("Journeys", trend.total)
            c2.metric("Revenue", f"£{journeys.monthly_revenue(rows).sum():,.0f}")
            c3.metric("Cancelled", trend.cancelled)
            c4.metric("First to last month", f"{trend.change_percent:+.1f}%")
            if trend.highest_month:
                st.caption(f"Busiest month: {trend.highest_month}, quietest: {trend.lowest_month}")

    def render_revenue_trend(self, rows, state):
        with self.slots["revenue_trend"]:
            fig = self.visualizer.plot_monthly_revenue(
                journeys.monthly_revenue(rows), journeys.monthly_refund(rows), highlight_month=state.month
            )
            show(fig)

    def render_revenue_by_type(self, rows, state):
        with self.slots["revenue_by_type"]:
            pivot = journeys.revenue_by_ticket_type(rows)
            show(self.visualizer.plot_revenue_by_ticket_type(pivot))
            st.dataframe(pivot.round(2))

    def render_ticket_mix(self, rows, state):
        railcards = journeys.railcard_split(rows)
        insight = journeys.standard_class_insight(rows)
        with self.slots["ticket_mix"]:
            c1, c2, c3 = st.columns(3)
            with c1:
                show(self.visualizer.plot_donut(journeys.ticket_class_split(rows), "Ticket Class", state.ticket_class))
            with c2:
                show(self.visualizer.plot_donut(journeys.ticket_type_counts(rows), "Ticket Type", state.ticket_type))
            with c3:
                holders = pd.Series({"Railcard Holder": railcards.holders, "Non Railcard Holder": railcards.non_holders})
                show(self.visualizer.plot_donut(holders, "Railcards"))
            st.caption(
                f"{insight.standard_percent:.0f}% of tickets are Standard class; "
                f"{insight.top_type} makes up {insight.top_type_percent:.0f}% of them."
            )

    def render_status_revenue(self, rows, state):
        with self.slots["status_revenue"]:
            left, right = st.columns(2)
            left.write("Revenue by journey status")
            left.dataframe(journeys.status_revenue(rows).round(2))
            right.write("Refunds by journey status")
            right.dataframe(journeys.status_refunds(rows).round(2))

    def render_routes(self, rows, state):
        top, bottom = journeys.route_revenue(rows)
        with self.slots["routes"]:
            left, right = st.columns(2)
            with left:
                show(self.visualizer.plot_routes_revenue(top, "Top 5 Routes by Revenue"))
            with right:
                show(self.visualizer.plot_routes_revenue(bottom, "Bottom 5 Routes by Revenue"))

    def render_reliability(self, rows, state):
        with self.slots["reliability"]:
            c1, c2 = st.columns(2)
            with c1:
                show(self.visualizer.plot_gauge(journeys.reliability_score(rows), "Reliability"))
                show(self.visualizer.plot_monthly_counts(journeys.monthly_on_time(rows), "On-time Journeys"))
            with c2:
                show(self.visualizer.plot_gauge(journeys.cancellation_score(rows), "Cancellation Score"))
                show(self.visualizer.plot_monthly_counts(
                    journeys.monthly_cancellations(rows), "Cancelled Journeys", color="#ef4444"))
            st.line_chart(journeys.monthly_reliability(rows))

    def render_delay_refunds(self, rows, state):
        with self.slots["delay_refunds"]:
            summary = journeys.delay_refund_summary(rows)
            show(self.visualizer.plot_delay_refunds(summary))

    def render_causes(self, rows, state):
        with self.slots["causes"]:
            show(self.visualizer.plot_leading_causes(journeys.leading_causes(rows)))

    def render_disruptions(self, rows, state):
        with self.slots["disruptions"]:
            st.subheader("Disruption Days")
            st.dataframe(journeys.disruption_table(rows).round(0))

    def render_refund_flows(self, rows, state):
        with self.slots["refund_flows"]:
            st.subheader("Refund Flows")
            flows = journeys.refund_flows(rows)
            st.dataframe(flows.sort_values("count", ascending=False).head(30).round(1))

    def render_ontime(self, rows, state):
        with self.slots["ontime"]:
            st.markdown("### On-time Performance")
            st.write(journeys.on_time_performance(rows, by="overall"))
            routes = journeys.on_time_performance(rows, by="route", top_n=10)
            show(self.visualizer.plot_ontime_bar(routes, "route"))
            st.write("Top departure stations by on-time % (top 10):")
            st.dataframe(journeys.on_time_performance(rows, by="departure_station", top_n=10))

    def render_arrival_ontime(self, rows, state):
        with self.slots["arrival_ontime"]:
            st.write("Top arrival stations by on-time % (top 10):")
            st.dataframe(journeys.on_time_performance(rows, by="arrival_station", top_n=10))

    # ----- main -----
    def run(self):
        st.title("NATIONAL RAIL | Performance Dashboard")

        st.sidebar.header("Data & Controls")
        uploaded_file = st.sidebar.file_uploader("Upload railway CSV", type=["csv"])
        use_sample = st.sidebar.checkbox("Use generated sample journeys", value=False)
        self.load_data(use_sample, uploaded_file)

        if "journeys" in self.frames:
            st.sidebar.subheader("Dataset Info")
            st.sidebar.write(f"Journeys: {len(self.frames['journeys'])}")
        if "operators" in self.frames:
            st.sidebar.write(f"Operators: {len(self.frames['operators'])}")

        self.build_layout()
        registry = ChartRegistry(self.store, self.frames)
        self.register_charts(registry)

        pending = st.session_state.pop(PENDING_KEY, None)
        if pending is not None:
            registry.dispatch(*pending)
        else:
            registry.notify_all()
        self.render_sidebar()

        if "journeys" in self.frames:
            csv = self.frames["journeys"].to_csv(index=False).encode("utf-8")
            st.download_button(label="Download processed CSV", data=csv, file_name="rail_processed.csv", mime="text/csv")


def main():
    config.setup_logging()
    st.set_page_config(page_title="National Rail | Performance Dashboard", layout="wide")
    RailDashboardApp().run()


if __name__ == "__main__":
    main()
