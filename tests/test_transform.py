"""Tests for building status transformation and natural sorting."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from src.dtek.models import OutageInfo, RawBuildingStatus, StatusResponse
from src.dtek.sorting import natural_sort, natural_sort_keys
from src.dtek.transform import (
    extract_schedule_group,
    get_outage_type,
    is_outage_active,
    parse_upstream_date,
    transform_building_status,
)


def _raw(**overrides) -> RawBuildingStatus:
    fields = {
        "sub_type": None,
        "start_date": None,
        "end_date": None,
        "type": None,
        "sub_type_reason": None,
    }
    fields.update(overrides)
    return RawBuildingStatus(**fields)


class TestScheduleGroup:
    def test_first_matching_reason_wins(self):
        assert extract_schedule_group(["REASON", "GPV3.2", "GPV1.1"]) == "GPV3.2"

    def test_partial_matches_are_rejected(self):
        assert extract_schedule_group(["GPV1", "xGPV1.2", "GPV1.2a", "GPV12.10"]) == "GPV12.10"

    @pytest.mark.parametrize("reasons", [None, [], ["GPV"]])
    def test_no_group(self, reasons):
        assert extract_schedule_group(reasons) is None


class TestOutageType:
    @pytest.mark.parametrize(
        ("sub_type", "expected"),
        [
            ("Аварійні ремонтні роботи", "emergency"),
            ("Стабілізаційне відключення (Згідно графіку погодинних відключень)", "stabilization"),
            ("Планові ремонтні роботи", "planned"),
            ("Щось нове", "planned"),
            (None, "planned"),
            ("", "planned"),
        ],
    )
    def test_classification(self, sub_type, expected):
        assert get_outage_type(sub_type) == expected


class TestTransform:
    def test_active_outage(self):
        status = transform_building_status(
            _raw(
                sub_type="Аварійні ремонтні роботи",
                start_date="00:40 13.12.2025",
                end_date="23:00 17.12.2025",
                type="2",
                sub_type_reason=["GPV1.2"],
            )
        )
        assert status.group == "GPV1.2"
        assert status.outage.type == "emergency"
        assert status.outage.model_dump(by_alias=True) == {
            "type": "emergency",
            "from": "00:40 13.12.2025",
            "to": "23:00 17.12.2025",
        }

    @pytest.mark.parametrize(
        "overrides",
        [
            {"type": None, "start_date": "00:40 13.12.2025", "end_date": "23:00 17.12.2025"},
            {"type": "1", "start_date": None, "end_date": "23:00 17.12.2025"},
            {"type": "1", "start_date": "00:40 13.12.2025", "end_date": ""},
        ],
    )
    def test_incomplete_outage_is_dropped(self, overrides):
        status = transform_building_status(_raw(sub_type_reason=["GPV4.1"], **overrides))
        assert status.outage is None
        assert status.group == "GPV4.1"

    def test_parse_upstream_date(self):
        assert parse_upstream_date("00:40 13.12.2025") == datetime(2025, 12, 13, 0, 40)
        with pytest.raises(ValueError):
            parse_upstream_date("2025-12-13 00:40")

    @pytest.mark.parametrize(
        ("now", "expected"),
        [
            (datetime(2025, 12, 13, 0, 39), False),
            (datetime(2025, 12, 13, 0, 40), True),
            (datetime(2025, 12, 15, 12, 0), True),
            (datetime(2025, 12, 17, 23, 1), False),
        ],
    )
    def test_outage_window(self, now, expected):
        outage = OutageInfo(type="planned", from_="00:40 13.12.2025", to="23:00 17.12.2025")
        assert is_outage_active(outage, now) is expected

    def test_unparsable_window_is_inactive(self):
        outage = OutageInfo(type="emergency", from_="сьогодні", to="23:00 17.12.2025")
        assert is_outage_active(outage, datetime(2025, 12, 15, 12, 0)) is False


class TestStatusResponse:
    def test_empty_list_data_is_empty_map(self):
        assert StatusResponse.model_validate({"result": True, "data": []}).data == {}

    def test_result_must_be_boolean(self):
        with pytest.raises(ValidationError):
            StatusResponse.model_validate({"result": "yes", "data": {}})

    def test_building_fields_are_required(self):
        with pytest.raises(ValidationError):
            StatusResponse.model_validate({"result": True, "data": {"1": {"type": "1"}}})

    def test_extra_fields_are_accepted(self):
        response = StatusResponse.model_validate(
            {
                "result": True,
                "data": {
                    "12": {
                        "sub_type": "",
                        "start_date": "",
                        "end_date": "",
                        "type": "",
                        "sub_type_reason": ["GPV1.1"],
                        "voluntarily": None,
                    }
                },
                "showCurOutageParam": False,
            }
        )
        assert response.data["12"].sub_type_reason == ["GPV1.1"]


class TestNaturalSort:
    def test_numbers_compare_numerically(self):
        assert natural_sort(["10", "2", "1А", "1", "12/2", "12А"]) == [
            "1",
            "1А",
            "2",
            "10",
            "12/2",
            "12А",
        ]

    def test_case_is_ignored(self):
        assert natural_sort(["вул. б", "Вул. А", "вул. а2"]) == ["Вул. А", "вул. а2", "вул. б"]

    def test_sort_mapping_keys(self):
        assert list(natural_sort_keys({"10": 1, "9": 2, "9А": 3})) == ["9", "9А", "10"]
