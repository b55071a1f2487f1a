"""Tests for the JSON command line entry point and the console demo."""

import json
import logging

import pytest

import main
from console_demo import ConsoleSession


def weekday_schedule() -> dict:
    return {
        "days": [
            {"day_of_week": d, "is_open": d != 0, "open_time": "09:00", "close_time": "17:00"}
            for d in range(7)
        ]
    }


def write_json(tmp_path, payload) -> str:
    path = tmp_path / "request.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


class TestAvailabilityCommand:
    def test_free_slot(self, tmp_path, capsys):
        path = write_json(tmp_path, {
            "subject_id": "F-1",
            "date": "2026-03-02",
            "schedule": weekday_schedule(),
            "requested_slot": {"start": 600, "end": 660},
        })
        assert main.main(["availability", path]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["slot"]["available"] is True
        assert output["day"]["free_slots"] == [{"start": 540, "end": 1020}]

    def test_conflict_exits_one(self, tmp_path, capsys):
        path = write_json(tmp_path, {
            "subject_id": "F-1",
            "date": "2026-03-02",
            "schedule": weekday_schedule(),
            "requested_slot": {"start": 660, "end": 690},
            "existing_bookings": [{"start": 600, "end": 660}],
            "buffer_minutes": 15,
        })
        assert main.main(["availability", path]) == 1
        output = json.loads(capsys.readouterr().out)
        assert output["slot"]["reason"] == "Conflicts with an existing booking"

    def test_slot_options(self, tmp_path, capsys):
        path = write_json(tmp_path, {
            "subject_id": "F-1",
            "date": "2026-03-02",
            "schedule": weekday_schedule(),
        })
        assert main.main(["availability", path, "--duration", "60"]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["slot"] is None
        assert output["options"][0]["time"] == "09:00"

    def test_next_available_from_now(self, tmp_path, capsys):
        path = write_json(tmp_path, {
            "subject_id": "F-1",
            "date": "2030-03-04",
            "schedule": weekday_schedule(),
            "existing_bookings": [{"start": 540, "end": 600}],
        })
        assert main.main(["availability", path, "--duration", "60"]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["next_available"] == {
            "date": "2030-03-04", "slot": {"start": 600, "end": 660},
        }

    def test_no_next_available_without_duration(self, tmp_path, capsys):
        path = write_json(tmp_path, {
            "subject_id": "F-1",
            "date": "2030-03-04",
            "schedule": weekday_schedule(),
        })
        assert main.main(["availability", path]) == 0
        assert json.loads(capsys.readouterr().out)["next_available"] is None


class TestPriceCommand:
    def test_breakdown(self, tmp_path, capsys):
        path = write_json(tmp_path, {
            "base_price": "1000",
            "tier_discount": {"tier_id": "gold", "discount_percent": "10"},
            "variations": [
                {"id": "peak", "price_type": "PERCENTAGE_ADJUSTMENT", "value": "20"}
            ],
        })
        assert main.main(["price", path]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["final_price"] == "1080.00"


class TestBookCommand:
    def test_rejected_booking_exits_one(self, tmp_path, capsys):
        path = write_json(tmp_path, {
            "request": {
                "club_id": "club-1",
                "member_id": "M-1",
                "booking_type": "FACILITY",
                "facility_id": "F-1",
                "date": "2030-03-04",
                "slot": {"start": 840, "end": 900},
                "guest_count": 8,
            },
            "context": {
                "member": {"id": "M-1"},
                "facility": {"id": "F-1", "name": "Court", "capacity": 4},
            },
        })
        assert main.main(["book", path]) == 1
        output = json.loads(capsys.readouterr().out)
        assert output["status"] == "REJECTED"
        assert output["errors"][0]["code"] == "GUEST_COUNT"

    def test_missing_record_exits_two(self, tmp_path):
        path = write_json(tmp_path, {
            "request": {
                "club_id": "club-1",
                "member_id": "M-1",
                "booking_type": "FACILITY",
                "facility_id": "F-1",
                "date": "2030-03-04",
                "slot": {"start": 840, "end": 900},
            },
            "context": {"member": {"id": "M-1"}},
        })
        assert main.main(["book", path]) == 2

    def test_utc_promotion_window_accepted(self, tmp_path, capsys):
        path = write_json(tmp_path, {
            "request": {
                "club_id": "club-1",
                "member_id": "M-1",
                "booking_type": "FACILITY",
                "facility_id": "F-1",
                "date": "2030-03-04",
                "slot": {"start": 840, "end": 900},
                "promotion_code": "SPRING10",
            },
            "context": {
                "member": {"id": "M-1"},
                "facility": {"id": "F-1", "name": "Court", "base_price": "40"},
                "promotion": {
                    "code": "SPRING10",
                    "promotion_type": "PERCENTAGE",
                    "value": "10",
                    "valid_from": "2020-01-01T00:00:00Z",
                    "valid_to": "2099-12-31T23:59:59Z",
                },
            },
        })
        assert main.main(["book", path]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["price"]["final_price"] == "36.00"
        assert output["warnings"] == []

    def test_request_id_tags_log_records(self, tmp_path, caplog):
        path = write_json(tmp_path, {"base_price": "10"})
        with caplog.at_level(logging.DEBUG, logger="main"):
            assert main.main(["price", path, "--request-id", "REQ-CLI-1"]) == 0
        records = [r for r in caplog.records if r.name == "main"]
        assert records
        assert all(r.request_id == "REQ-CLI-1" for r in records)


class TestErrors:
    def test_missing_file(self, tmp_path):
        assert main.main(["price", str(tmp_path / "absent.json")]) == 2

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        assert main.main(["price", str(path)]) == 2

    def test_schema_violation(self, tmp_path):
        assert main.main(["price", write_json(tmp_path, {"base_price": "-5"})]) == 2

    def test_unknown_command(self, tmp_path):
        with pytest.raises(SystemExit):
            main.main(["refund", write_json(tmp_path, {})])


class TestConsoleDemo:
    @pytest.mark.parametrize("scenario", sorted(ConsoleSession.SCENARIOS))
    def test_scenarios_run(self, scenario, capsys):
        ConsoleSession().run_scenario(scenario)
        assert scenario in capsys.readouterr().out

    def test_pricing_scenario_total(self, capsys):
        ConsoleSession().run_scenario("pricing")
        assert "$1,080.00" in capsys.readouterr().out

    def test_terminal_scenario_rejects_update(self, capsys):
        ConsoleSession().run_scenario("terminal")
        assert "TERMINAL_STATE" in capsys.readouterr().out

    def test_availability_scenario_skips_passed_slots(self, capsys):
        ConsoleSession().run_scenario("availability")
        assert "Next 60 min slot after 09:45: 11:30-12:30" in capsys.readouterr().out
