#!/usr/bin/env python3
"""Tests for Vehicle and ServiceLog records."""
from conftest import make_vehicle
from maintenance import ServiceLog, Vehicle


class TestVehicle:
    """Tests for Vehicle."""

    def test_name(self):
        assert make_vehicle().name == "2015 Subaru BRZ"

    def test_name_without_year(self):
        assert Vehicle("v", "Subaru", "BRZ").name == "Subaru BRZ"

    def test_has_contact(self):
        assert make_vehicle().has_contact
        assert not make_vehicle(contact_email=None).has_contact
        assert not make_vehicle(contact_email="   ").has_contact


class TestServiceLog:
    """Tests for ServiceLog."""

    def test_custom_log(self):
        log = ServiceLog("l1", "brz", "Detailing", "2024-03-15")
        assert log.schedule_id is None
        assert log.mileage is None

    def test_scheduled_log(self):
        log = ServiceLog("l1", "brz", "Oil Change", "2024-06-01", schedule_id="oil")
        assert log.schedule_id == "oil"
