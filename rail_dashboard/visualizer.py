"""matplotlib/seaborn figures for the dashboard. Each method returns a Figure."""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.collections import PatchCollection
from matplotlib.colors import to_rgba
from matplotlib.patches import Polygon
import seaborn as sns

from rail_dashboard import config
from rail_dashboard.operators import band_color, cancellation_band, geojson_country, punctuality_band

HIGHLIGHT = "#7c3aed"
MUTED = "#c7c9e0"


def _exterior_rings(geometry):
    """Outer ring of every polygon in a GeoJSON Polygon/MultiPolygon."""
    if not geometry:
        return []
    if geometry.get("type") == "Polygon":
        return geometry["coordinates"][:1]
    if geometry.get("type") == "MultiPolygon":
        return [polygon[0] for polygon in geometry["coordinates"] if polygon]
    return []


class RailVisualizer:
    def __init__(self):
        sns.set_style("whitegrid")

    def _empty(self, message, figsize=(8, 3)):
        fig, ax = plt.subplots(figsize=figsize)
        ax.text(0.5, 0.5, message, ha="center", va="center")
        ax.axis("off")
        return fig

    # ---------- European operators ----------
    def plot_country_punctuality(self, table: pd.DataFrame, highlight=None, title="Average Punctuality by Country"):
        """Horizontal bars coloured by punctuality band; ``highlight`` fades the other countries."""
        if table.empty:
            return self._empty("No operator data")
        df = table.dropna(subset=["avg_punctuality"]).sort_values("avg_punctuality", ascending=False)
        colors = [band_color(punctuality_band(v)) for v in df["avg_punctuality"]]
        fig, ax = plt.subplots(figsize=(10, 6))
        bars = ax.barh(df.index, df["avg_punctuality"], color=colors)
        if highlight:
            for bar, country in zip(bars, df.index):
                bar.set_alpha(1.0 if country in highlight else 0.2)
        ax.invert_yaxis()
        ax.set_xlim(0, 100)
        ax.set_xlabel("Punctuality (%)")
        ax.set_title(title)
        plt.tight_layout()
        return fig

    def plot_country_map(self, geojson: dict, table: pd.DataFrame, highlight=None):
        """Europe choropleth of average punctuality; ``highlight`` fades the other countries."""
        features = geojson.get("features") or []
        if not features:
            return self._empty("No map outline")
        punctuality = table["avg_punctuality"] if "avg_punctuality" in table else pd.Series(dtype=float)
        patches, colors = [], []
        for feature in features:
            country = geojson_country(feature)
            color = band_color(punctuality_band(punctuality.get(country)))
            alpha = 0.2 if highlight and country not in highlight else 1.0
            for ring in _exterior_rings(feature.get("geometry")):
                patches.append(Polygon(ring, closed=True))
                colors.append(to_rgba(color, alpha))
        fig, ax = plt.subplots(figsize=(8, 8))
        ax.add_collection(PatchCollection(patches, facecolors=colors, edgecolors="white", linewidths=0.5))
        ax.autoscale_view()
        ax.set_aspect("equal")
        ax.axis("off")
        ax.set_title("Average Punctuality by Country")
        return fig

    def plot_cancellation_ranking(self, ranking: pd.Series, title="Average Cancellation Rate by Country"):
        if ranking.empty:
            return self._empty("No cancellation data")
        fig, ax = plt.subplots(figsize=(10, 4))
        colors = [band_color(cancellation_band(v)) for v in ranking.values]
        ax.bar(ranking.index, ranking.values, color=colors)
        for i, v in enumerate(ranking.values):
            ax.text(i, v, f"{v:.1f}%", ha="center", va="bottom", fontsize=9)
        ax.set_ylabel("Cancellation Rate (%)")
        ax.set_title(title)
        plt.tight_layout()
        return fig

    def plot_price_vs_punctuality(self, operators: pd.DataFrame, averages: pd.DataFrame):
        fig, ax = plt.subplots(figsize=(8, 5))
        is_uk = operators["country"].eq(config.REFERENCE_COUNTRY)
        sns.scatterplot(
            x="ticket_price_per_km", y="punctuality", data=operators,
            hue=np.where(is_uk, "UK operator", "Other operator"), ax=ax,
        )
        for group, row in averages.iterrows():
            ax.scatter(row["ticket_price_per_km"], row["punctuality"], marker="*", s=250, label=f"{group} average")
        ax.set_xlabel("Ticket Price (€/km)")
        ax.set_ylabel("Punctuality (%)")
        ax.set_title("Ticket Price vs Punctuality")
        ax.legend()
        plt.tight_layout()
        return fig

    def plot_service_radar(self, radar: pd.DataFrame):
        labels = list(radar.index)
        angles = np.linspace(0, 2 * np.pi, len(labels), endpoint=False).tolist()
        fig, ax = plt.subplots(figsize=(5, 5), subplot_kw={"polar": True})
        for column, color in zip(radar.columns, [HIGHLIGHT, "#94a3b8"]):
            values = radar[column].tolist()
            ax.plot(angles + angles[:1], values + values[:1], color=color, label=column)
            ax.fill(angles + angles[:1], values + values[:1], color=color, alpha=0.2)
        ax.set_xticks(angles)
        ax.set_xticklabels(labels)
        ax.set_ylim(0, 1)
        ax.set_title("Service Profile: UK vs EU")
        ax.legend(loc="upper right", bbox_to_anchor=(1.2, 1.1))
        return fig

    def plot_metric_grid(self, grid: pd.DataFrame):
        """UK plus the least punctual countries, one bubble per metric (larger = weaker)."""
        if grid.empty:
            return self._empty("No operator data")
        maxima = {"punctuality": 100}
        fig, ax = plt.subplots(figsize=(9, 4))
        for col, country in enumerate(grid.index):
            for row, metric in enumerate(grid.columns):
                value = grid.at[country, metric]
                share = value / maxima.get(metric, 10)
                ax.scatter(col, row, s=max(1.1 - share, 0.05) * 1500, color=HIGHLIGHT if col == 0 else MUTED, alpha=0.8)
                ax.text(col, row, f"{value:.1f}", ha="center", va="center", fontsize=8)
        ax.set_xticks(range(len(grid.index)))
        ax.set_xticklabels(grid.index)
        ax.set_yticks(range(len(grid.columns)))
        ax.set_yticklabels([c.replace("_score", "").replace("_", " ").title() for c in grid.columns])
        ax.set_xlim(-0.5, len(grid.index) - 0.5)
        ax.set_ylim(-0.5, len(grid.columns) - 0.5)
        ax.set_title("Lowest Punctuality Countries vs UK")
        plt.tight_layout()
        return fig

    def plot_similarity(self, links):
        if not links:
            return self._empty("No countries to compare")
        df = pd.DataFrame([vars(link) for link in links]).sort_values("normalized")
        fig, ax = plt.subplots(figsize=(8, 4))
        colors = [HIGHLIGHT if source == "computed" else "#f59e0b" for source in df["source"]]
        ax.barh(df["country"], df["normalized"], color=colors)
        ax.set_xlim(0, 1)
        ax.set_xlabel("Similarity to UK")
        ax.set_title("Rail Network Similarity")
        plt.tight_layout()
        return fig

    # ---------- UK journeys ----------
    def plot_monthly_revenue(self, revenue: pd.Series, refund: pd.Series, highlight_month=None):
        if revenue.empty:
            return self._empty("No revenue in the current selection")
        fig, ax = plt.subplots(figsize=(10, 4))
        ax.plot(revenue.index, revenue.values, marker="o", color=HIGHLIGHT, label="Revenue")
        refund = refund.reindex(revenue.index, fill_value=0)
        ax.plot(refund.index, refund.values, marker="o", color="#ef4444", label="Refunds")
        if highlight_month in revenue.index:
            ax.axvline(list(revenue.index).index(highlight_month), color="#f59e0b", linestyle="--")
        ax.set_ylabel("£")
        ax.set_title("Monthly Revenue and Refunds")
        ax.legend()
        plt.tight_layout()
        return fig

    def plot_revenue_by_ticket_type(self, pivot: pd.DataFrame):
        if pivot.empty:
            return self._empty("No revenue in the current selection")
        fig, ax = plt.subplots(figsize=(8, 4))
        pivot.plot(kind="bar", stacked=True, ax=ax, color=config.BAND_COLORS[1:])
        ax.set_xlabel("")
        ax.set_ylabel("Revenue (£)")
        ax.set_title("Revenue by Ticket Type")
        plt.xticks(rotation=0)
        plt.tight_layout()
        return fig

    def plot_delay_refunds(self, summary: pd.DataFrame):
        fig, ax = plt.subplots(figsize=(10, 4))
        ax.bar(summary["bucket"], summary["net_revenue"], color=MUTED, label="Net revenue")
        ax.bar(summary["bucket"], summary["refund"], bottom=summary["net_revenue"], color="#ef4444", label="Refunded")
        for i, pct in enumerate(summary["refund_percent"]):
            ax.text(i, summary["total_revenue"].iloc[i], f"{pct:.0f}%", ha="center", va="bottom", fontsize=9)
        ax.set_xlabel("Delay")
        ax.set_ylabel("Revenue (£)")
        ax.set_title("Refunds by Delay Length")
        ax.legend()
        plt.tight_layout()
        return fig

    def plot_busiest_slots(self, slots: pd.DataFrame):
        fig, ax = plt.subplots(figsize=(10, 3))
        peak = slots["count"].idxmax() if slots["count"].any() else None
        colors = [HIGHLIGHT if i == peak else MUTED for i in slots.index]
        ax.bar(slots["slot"], slots["count"], color=colors)
        ax.set_ylabel("Departures")
        ax.set_title("Busiest 15-minute Slots")
        plt.xticks(rotation=45)
        plt.tight_layout()
        return fig

    def plot_departure_hour(self, hour_counts: pd.Series, title="Number of Journeys by Departure Hour"):
        fig, ax = plt.subplots(figsize=(10, 4))
        sns.barplot(x=hour_counts.index, y=hour_counts.values, ax=ax, color=HIGHLIGHT)
        ax.set_title(title)
        ax.set_xlabel("Hour of Day")
        ax.set_ylabel("Number of Journeys")
        plt.tight_layout()
        return fig

    def plot_heatmap_day_hour(self, matrix: pd.DataFrame):
        fig, ax = plt.subplots(figsize=(12, 4))
        sns.heatmap(matrix, annot=False, cmap="Purples", ax=ax)
        ax.set_title("Journeys by Day of Week vs Hour")
        plt.tight_layout()
        return fig

    def plot_routes_revenue(self, routes: pd.DataFrame, title="Top Routes by Revenue"):
        if routes.empty:
            return self._empty("No route revenue in the current selection")
        fig, ax = plt.subplots(figsize=(10, 4))
        sns.barplot(x="revenue", y="route", data=routes, ax=ax, color=HIGHLIGHT)
        ax.set_title(title)
        ax.set_xlabel("Revenue (£)")
        ax.set_ylabel("")
        plt.tight_layout()
        return fig

    def plot_station_peaks(self, peaks: pd.DataFrame, title, selected=None):
        """Busiest stations with their peak clock time; ``selected`` is drawn highlighted."""
        if peaks.empty:
            return self._empty("No stations in the current selection")
        fig, ax = plt.subplots(figsize=(8, 4))
        colors = [HIGHLIGHT if station == selected else MUTED for station in peaks["station"]]
        ax.barh(peaks["station"], peaks["count"], color=colors)
        for i, row in peaks.iterrows():
            ax.text(row["count"], i, f" {row['peak_time']}", va="center", fontsize=9)
        ax.invert_yaxis()
        ax.set_title(title)
        ax.set_xlabel("Journeys at peak time")
        ax.set_ylabel("")
        plt.tight_layout()
        return fig

    def plot_donut(self, counts: pd.Series, title, selected=None):
        if counts.sum() == 0:
            return self._empty(f"{title}: no journeys", figsize=(4, 4))
        fig, ax = plt.subplots(figsize=(4, 4))
        colors = [HIGHLIGHT if label == selected else c
                  for label, c in zip(counts.index, config.BAND_COLORS * 2)]
        ax.pie(counts.values, labels=counts.index, colors=colors, autopct="%1.0f%%",
               wedgeprops={"width": 0.4}, startangle=90)
        ax.set_title(title)
        return fig

    def plot_gauge(self, score, title):
        """Half-donut gauge for a 0-100 score; None shows as "–"."""
        fig, ax = plt.subplots(figsize=(4, 2.5))
        value = 0 if score is None else score
        ax.pie([value, 100 - value, 100], colors=[HIGHLIGHT, "#e5e7eb", "white"],
               startangle=180, counterclock=False, wedgeprops={"width": 0.3})
        ax.text(0, -0.1, "–" if score is None else f"{score:.1f}%", ha="center", fontsize=16)
        ax.set_title(title)
        return fig

    def plot_monthly_counts(self, monthly: pd.DataFrame, title, color=HIGHLIGHT):
        if monthly.empty:
            return self._empty("No journeys in the current selection")
        fig, ax = plt.subplots(figsize=(8, 3))
        ax.bar(monthly["month"], monthly["count"], color=color)
        for i, change in enumerate(monthly["percent_change"]):
            if i:
                ax.text(i, monthly["count"].iloc[i], f"{change:+.0f}%", ha="center", va="bottom", fontsize=9)
        ax.set_title(title)
        plt.tight_layout()
        return fig

    def plot_leading_causes(self, causes: pd.DataFrame):
        if causes.empty:
            return self._empty("No cancellations in the current selection")
        fig, ax = plt.subplots(figsize=(8, 4))
        sns.barplot(x="passengers", y="reason", data=causes, ax=ax, color="#ef4444")
        ax.set_title("Leading Causes of Cancellation")
        ax.set_xlabel("Passengers affected")
        ax.set_ylabel("")
        plt.tight_layout()
        return fig

    def plot_ontime_bar(self, table: pd.DataFrame, label_col, title="Top Routes by On-Time % (Top 10)"):
        """Horizontal bars sorted by on-time percentage, highest at top."""
        if table.empty:
            return self._empty("Not enough data to compute on-time performance")
        df_sorted = table.sort_values("on_time_pct", ascending=False).head(10)
        fig, ax = plt.subplots(figsize=(10, 6))
        sns.barplot(x="on_time_pct", y=label_col, data=df_sorted, order=df_sorted[label_col].tolist(), ax=ax, orient="h")
        ax.set_xlim(0, 100)
        ax.set_xlabel("On-Time Percentage (%)")
        ax.set_ylabel("")
        ax.set_title(title)
        for p in ax.patches:
            width = p.get_width()
            ax.text(width + 1, p.get_y() + p.get_height() / 2, f"{width:.1f}%", va="center", fontsize=9)
        plt.tight_layout()
        return fig
