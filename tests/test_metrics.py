"""Tests for metric normalization, aggregation, revenue de-duplication and video retention.

Run with: pytest tests/test_metrics.py -v
"""

import math

import pytest

from services.metrics import (
    PURCHASE_ACTION_TYPES,
    ROAS_ACTION_TYPES,
    aggregate_metrics,
    build_timeline,
    calculate_revenue,
    calculate_row_roas,
    get_conversion_count,
    get_video_retention,
    parse_metric,
    single_match_value,
    sum_matching_values,
)


class TestParseMetric:

    @pytest.mark.parametrize("raw,expected", [
        ("12.5", 12.5),
        ("0", 0.0),
        (None, 0.0),
        ("", 0.0),
        ("n/a", 0.0),
        ("NaN", 0.0),
        ("inf", 0.0),
        (7, 7.0),
    ])
    def test_parse(self, raw, expected):
        assert parse_metric(raw) == expected


class TestActionScans:

    ACTIONS = [
        {"action_type": "link_click", "value": "30"},
        {"action_type": "purchase", "value": "5"},
        {"action_type": "omni_purchase", "value": "7"},
    ]

    def test_single_match_returns_first(self):
        assert single_match_value(self.ACTIONS, ROAS_ACTION_TYPES) == 5.0

    def test_sum_matching_adds_all(self):
        assert sum_matching_values(self.ACTIONS, PURCHASE_ACTION_TYPES) == 12.0

    def test_scans_tolerate_missing_lists(self):
        assert single_match_value(None, ROAS_ACTION_TYPES) == 0.0
        assert sum_matching_values([], PURCHASE_ACTION_TYPES) == 0.0
        assert sum_matching_values([{"action_type": "purchase"}], PURCHASE_ACTION_TYPES) == 0.0


class TestAggregateMetrics:

    def test_purchase_scenario(self):
        rows = [{"spend": "100", "action_values": [{"action_type": "purchase", "value": "250"}]}]

        metrics = aggregate_metrics(rows)

        assert metrics.total_spend == 100
        assert metrics.purchase_value == 250
        assert metrics.roas == 2.5

    def test_empty_input_is_all_zero(self):
        metrics = aggregate_metrics([])

        assert metrics.avg_ctr == 0
        assert metrics.avg_cpc == 0
        assert metrics.avg_cpm == 0
        assert metrics.roas == 0
        assert not math.isnan(metrics.roas)

    def test_totals_and_row_averages(self):
        rows = [
            {"spend": "10", "impressions": "1000", "clicks": "10", "reach": "900", "ctr": "1.0", "cpc": "1.0", "cpm": "10"},
            {"spend": "90", "impressions": "1", "clicks": "1", "reach": "1", "ctr": "100", "cpc": "90", "cpm": "90000"},
        ]

        metrics = aggregate_metrics(rows)

        assert metrics.total_spend == 100
        assert metrics.total_impressions == 1001
        assert metrics.total_clicks == 11
        assert metrics.total_reach == 901
        # Unweighted mean of the per-row values
        assert metrics.avg_ctr == pytest.approx(50.5)
        assert metrics.avg_cpc == pytest.approx(45.5)
        assert metrics.avg_cpm == pytest.approx(45005)

    def test_spend_total_is_order_independent(self):
        rows = [{"spend": "1.25"}, {"spend": None}, {}, {"spend": "3.75"}, {"spend": "0"}]

        assert aggregate_metrics(rows).total_spend == aggregate_metrics(list(reversed(rows))).total_spend == 5.0

    def test_all_purchase_types_on_a_row_are_summed(self):
        rows = [{
            "spend": "100",
            "action_values": [
                {"action_type": "purchase", "value": "100"},
                {"action_type": "omni_purchase", "value": "100"},
                {"action_type": "offsite_conversion.fb_pixel_purchase", "value": "50"},
                {"action_type": "add_to_cart", "value": "999"},
            ],
        }]

        assert aggregate_metrics(rows).purchase_value == 250

    def test_zero_spend_gives_zero_roas(self):
        rows = [{"spend": "0", "action_values": [{"action_type": "purchase", "value": "80"}]}]

        metrics = aggregate_metrics(rows)

        assert metrics.purchase_value == 80
        assert metrics.roas == 0

    def test_to_dict_uses_dashboard_keys(self):
        data = aggregate_metrics([{"spend": "5"}]).to_dict()

        assert data["totalSpend"] == 5
        assert set(data) >= {"totalImpressions", "totalClicks", "totalReach", "avgCTR", "avgCPC", "avgCPM", "roas"}


class TestCalculateRevenue:

    def test_duplicate_ad_day_counted_once(self):
        rows = [
            {"ad_id": "42", "date_start": "2024-01-01", "spend": "50"},
            {"ad_id": "42", "date_start": "2024-01-01", "spend": "50"},
        ]

        summary = calculate_revenue(rows)

        assert summary.total_spend == 50
        assert summary.unique_rows == 1
        assert summary.input_rows == 2
        assert summary.unique_ads == 1

    def test_appending_duplicate_changes_nothing(self):
        rows = [
            {"ad_id": "1", "date_start": "2024-01-01", "spend": "40",
             "action_values": [{"action_type": "purchase", "value": "100"}]},
            {"ad_id": "1", "date_start": "2024-01-02", "spend": "60",
             "action_values": [{"action_type": "omni_purchase", "value": "50"}]},
        ]
        before = calculate_revenue(rows)
        after = calculate_revenue(rows + [dict(rows[0])])

        assert after.total_spend == before.total_spend
        assert after.total_generated == before.total_generated
        assert after.unique_rows == before.unique_rows

    def test_roas_and_roi(self):
        rows = [
            {"ad_id": "1", "date_start": "2024-01-01", "spend": "100",
             "action_values": [
                 {"action_type": "purchase", "value": "200"},
                 {"action_type": "offsite_conversion.fb_pixel_purchase", "value": "100"},
             ]},
        ]

        summary = calculate_revenue(rows)

        assert summary.total_generated == 300
        assert summary.roas == 3.0
        assert summary.roi == 200.0
        assert summary.purchase_actions == 2

    def test_first_occurrence_wins(self):
        rows = [
            {"ad_id": "7", "date_start": "2024-01-01", "spend": "10"},
            {"ad_id": "7", "date_start": "2024-01-01", "spend": "999"},
        ]

        assert calculate_revenue(rows).total_spend == 10

    def test_zero_spend(self):
        summary = calculate_revenue([])

        assert summary.roas == 0
        assert summary.roi == 0
        assert summary.input_rows == 0


class TestRowHelpers:

    def test_row_roas_uses_first_match(self):
        row = {
            "spend": "10",
            "action_values": [
                {"action_type": "omni_purchase", "value": "30"},
                {"action_type": "purchase", "value": "30"},
            ],
        }
        assert calculate_row_roas(row) == 3.0

    def test_row_roas_ignores_pixel_purchase(self):
        row = {"spend": "10", "action_values": [{"action_type": "offsite_conversion.fb_pixel_purchase", "value": "30"}]}
        assert calculate_row_roas(row) == 0

    def test_conversion_count_sums_matches(self):
        row = {"actions": [
            {"action_type": "purchase", "value": "2"},
            {"action_type": "offsite_conversion.fb_pixel_purchase", "value": "1.5"},
        ]}
        assert get_conversion_count(row) == 3.5


def test_build_timeline_groups_by_date():
    rows = [
        {"date_start": "2024-01-02", "spend": "5", "impressions": "100", "clicks": "1"},
        {"date_start": "2024-01-01", "spend": "10", "impressions": "200", "clicks": "4"},
        {"date_start": "2024-01-02", "spend": "2.5", "impressions": "50"},
    ]

    timeline = build_timeline(rows)

    assert [p["date"] for p in timeline] == ["2024-01-01", "2024-01-02"]
    assert timeline[1] == {"date": "2024-01-02", "spend": 7.5, "impressions": 150, "clicks": 1}


def test_video_retention():
    row = {
        "video_play_actions": [{"action_type": "video_view", "value": "1000"}],
        "video_thruplay_watched_actions": [{"action_type": "video_view", "value": "250"}],
        "video_avg_time_watched_actions": [{"action_type": "video_view", "value": "4.2"}],
        "video_p50_watched_actions": [{"action_type": "video_view", "value": "400"}],
        "video_p100_watched_actions": [],
    }

    retention = get_video_retention(row)

    assert retention.video_plays == 1000
    assert retention.thruplays == 250
    assert retention.avg_time_watched == 4.2
    assert retention.p50 == 400
    assert retention.p100 == 0
    assert retention.has_video_data is True
    assert get_video_retention({}).has_video_data is False
