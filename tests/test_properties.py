"""Tests for the property service: folder resolution, edits, renovations, roles."""
from __future__ import annotations

from datetime import date
from unittest.mock import MagicMock

import pytest

from core.exceptions import FolderRequiredError, NotFoundError, PermissionDeniedError, ValidationError
from core.models import Property, RenovationItem, Visit
from domain.access import Actor
from domain.folders import FolderService
from domain.properties import PropertyService, coerce_property_fields
from llm.renovation_advisor import RenovationAdvisor, RenovationSuggestion


class TestCoercion:
    def test_numbers_and_rating_clamp(self):
        values = coerce_property_fields({"price": "250000", "rooms": "3", "rating": 9})
        assert values == {"price": 250000.0, "rooms": 3, "rating": 5}

    def test_blank_exact_address_becomes_null(self):
        assert coerce_property_fields({"exact_address": "  "})["exact_address"] is None

    def test_none_text_becomes_empty(self):
        assert coerce_property_fields({"notes": None})["notes"] == ""

    def test_unknown_field(self):
        with pytest.raises(ValidationError):
            coerce_property_fields({"colour": "red"})

    def test_bad_number(self):
        with pytest.raises(ValidationError):
            coerce_property_fields({"price": "lots"})

    def test_bad_status(self):
        with pytest.raises(ValidationError):
            coerce_property_fields({"status": "Bought"})


class TestFolderResolution:
    def test_explicit_folder_wins(self, db_session, buyer, folder, make_folder):
        other = make_folder("Other")
        prop = PropertyService(db_session, buyer).create_property(
            {"title": "X"}, folder_id=folder.id, active_folder_id=other.id
        )
        assert prop.folder_id == folder.id

    def test_active_folder_next(self, db_session, buyer, folder, make_folder):
        other = make_folder("Other")
        prop = PropertyService(db_session, buyer).create_property({"title": "X"}, active_folder_id=folder.id)
        assert prop.folder_id == folder.id
        assert prop.folder_id != other.id

    def test_newest_folder_last(self, db_session, buyer, folder, make_folder):
        newest = make_folder("Newest")
        prop = PropertyService(db_session, buyer).create_property({"title": "X"})
        assert prop.folder_id == newest.id

    def test_no_folders_at_all(self, db_session, buyer):
        with pytest.raises(FolderRequiredError):
            PropertyService(db_session, buyer).create_property({"title": "X"})
        assert db_session.query(Property).count() == 0

    def test_foreign_folder_is_not_found(self, db_session, folder):
        stranger = Actor(user_id="someone-else")
        with pytest.raises(NotFoundError):
            PropertyService(db_session, stranger).create_property({"title": "X"}, folder_id=folder.id)


class TestPropertyService:
    def test_create_with_renovations(self, db_session, buyer, folder):
        prop = PropertyService(db_session, buyer).create_property(
            {"title": "Ático", "price": 300000, "exact_address": "Calle Mayor 1"},
            folder_id=folder.id,
            renovations=[
                {"category": "Cocina", "estimated_cost": 12000},
                {"category": "Baño", "estimated_cost": "6000"},
            ],
        )

        assert prop.status == "Wishlist"
        assert prop.user_id == buyer.user_id
        assert [r.position for r in prop.renovation_costs] == [0, 1]
        assert prop.renovation_total == 18000

    def test_update_and_status(self, db_session, buyer, make_property):
        prop = make_property()
        service = PropertyService(db_session, buyer)

        service.update_property(prop.id, {"notes": "Llamar al portero", "price": "195000"})
        service.update_status(prop.id, "Contacted")

        assert prop.notes == "Llamar al portero"
        assert prop.price == 195000
        assert prop.status == "Contacted"

    def test_list_only_visible_newest_first(self, db_session, buyer, make_property, make_folder):
        first = make_property()
        second = make_property()
        foreign = make_folder("Foreign", owner_id="someone-else")
        make_property(folder_id=foreign.id)

        listed = PropertyService(db_session, buyer).list_properties()
        assert [p.id for p in listed] == [second.id, first.id]

    def test_renovations_are_replaced_wholesale(self, db_session, buyer, make_property):
        prop = make_property()
        service = PropertyService(db_session, buyer)
        service.update_renovations(prop.id, [{"category": "A", "estimated_cost": 1}, {"category": "B", "estimated_cost": 2}])
        service.update_renovations(prop.id, [{"category": "C", "estimated_cost": 3}])

        rows = db_session.query(RenovationItem).filter_by(property_id=prop.id).all()
        assert [r.category for r in rows] == ["C"]
        assert prop.renovation_total == 3

    def test_suggestions_append_to_existing(self, db_session, buyer, make_property):
        prop = make_property()
        service = PropertyService(db_session, buyer)
        service.update_renovations(prop.id, [{"category": "Pintura", "estimated_cost": 2000}])

        advisor = MagicMock(spec=RenovationAdvisor)
        advisor.suggest.return_value = [RenovationSuggestion("Cocina", "Nueva", 9000)]
        prop, suggestions = service.suggest_renovations(prop.id, advisor)

        assert [r.category for r in prop.renovation_costs] == ["Pintura", "Cocina"]
        assert len(suggestions) == 1

    def test_no_suggestions_leave_items_alone(self, db_session, buyer, make_property):
        prop = make_property()
        advisor = MagicMock(spec=RenovationAdvisor)
        advisor.suggest.return_value = []

        prop, suggestions = PropertyService(db_session, buyer).suggest_renovations(prop.id, advisor)
        assert suggestions == []
        assert prop.renovation_costs == []

    def test_delete_cascades_to_renovations_only(self, db_session, buyer, make_property):
        prop = make_property()
        service = PropertyService(db_session, buyer)
        service.update_renovations(prop.id, [{"category": "A", "estimated_cost": 1}])
        visit = Visit(property_id=prop.id, folder_id=prop.folder_id, user_id=buyer.user_id, visit_date=date(2026, 1, 2))
        db_session.add(visit)
        db_session.flush()

        service.delete_property(prop.id)

        assert db_session.query(RenovationItem).count() == 0
        assert db_session.get(Visit, visit.id) is not None


class TestRoles:
    def test_architect_edits_renovations_but_not_properties(self, db_session, buyer, architect, folder, make_property):
        FolderService(db_session, buyer).share_folder(folder.id, "architect@example.com", "edit")
        prop = make_property()
        service = PropertyService(db_session, architect)

        service.update_renovations(prop.id, [{"category": "Estructura", "estimated_cost": 4000}])
        assert prop.renovation_total == 4000

        with pytest.raises(PermissionDeniedError):
            service.update_status(prop.id, "Offered")
        with pytest.raises(PermissionDeniedError):
            service.create_property({"title": "X"}, folder_id=folder.id)

    def test_contractor_is_read_only(self, db_session, contractor, make_property):
        prop = make_property()
        service = PropertyService(db_session, contractor)
        with pytest.raises(PermissionDeniedError):
            service.update_renovations(prop.id, [])
        with pytest.raises(PermissionDeniedError):
            service.delete_property(prop.id)
