"""Tests for geocoder-backed address validation and its debounce front."""
from __future__ import annotations

import asyncio
import threading
import time

import httpx

from services.address_validator import (
    AddressValidation,
    DebouncedAddressValidator,
    ValidationStatus,
    compose_display,
)


def feature(street, housenumber):
    return {
        "geometry": {"coordinates": [-3.70, 40.42]},
        "properties": {"street": street, "housenumber": housenumber, "city": "Madrid"},
    }


class TestComposeDisplay:
    def test_joins_street_number_city_country(self):
        display = compose_display(
            {"street": "Calle Mayor", "housenumber": "1", "city": "Madrid", "country": "España"}
        )
        assert display == "Calle Mayor, 1, Madrid, España"

    def test_prefers_district_and_state(self):
        display = compose_display(
            {"name": "Plaza", "district": "Centro", "city": "Madrid", "state": "Comunidad de Madrid"}
        )
        assert display == "Plaza, Centro, Comunidad de Madrid"

    def test_empty_properties(self):
        assert compose_display({}) == ""


class TestAddressValidator:
    def test_short_address_is_idle_without_lookup(self, make_address_validator, geocoder_requests):
        verdict = make_address_validator().validate("  ab ")

        assert verdict.status == ValidationStatus.IDLE
        assert geocoder_requests == []

    def test_valid_address(self, make_address_validator):
        verdict = make_address_validator().validate("Calle Mayor 1, Madrid")

        assert verdict.status == ValidationStatus.VALID
        assert verdict.normalized_display == "Calle Mayor, 1, Madrid, España"
        assert verdict.lat == 40.4156
        assert verdict.lng == -3.7074

    def test_no_features_is_invalid(self, make_address_validator):
        validator = make_address_validator(lambda q: httpx.Response(200, json={"features": []}))
        assert validator.validate("Nowhere street 99").status == ValidationStatus.INVALID

    def test_short_display_is_invalid(self, make_address_validator):
        feature = {"geometry": {"coordinates": [0, 0]}, "properties": {"name": "X"}}
        validator = make_address_validator(lambda q: httpx.Response(200, json={"features": [feature]}))
        assert validator.validate("Something long").status == ValidationStatus.INVALID

    def test_server_error_fails_closed(self, make_address_validator):
        validator = make_address_validator(lambda q: httpx.Response(503))
        verdict = validator.validate("Calle Mayor 1")

        assert verdict.status == ValidationStatus.INVALID
        assert verdict.source == "error"

    def test_malformed_payload_fails_closed(self, make_address_validator):
        validator = make_address_validator(lambda q: httpx.Response(200, text="not json"))
        assert validator.validate("Calle Mayor 1").status == ValidationStatus.INVALID

    def test_results_are_cached_case_insensitively(self, make_address_validator, geocoder_requests):
        validator = make_address_validator()
        validator.validate("Calle Mayor 1")
        validator.validate("calle mayor 1")

        assert geocoder_requests == ["Calle Mayor 1"]

    def test_errors_are_not_cached(self, make_address_validator, geocoder_requests):
        validator = make_address_validator(lambda q: httpx.Response(500))
        validator.validate("Calle Mayor 1")
        validator.validate("Calle Mayor 1")

        assert len(geocoder_requests) == 2

    def test_disabled_geocoder_is_invalid(self, make_address_validator, test_settings, geocoder_requests):
        validator = make_address_validator()
        validator.settings = test_settings.model_copy(update={"enable_geocoder": False})

        verdict = validator.validate("Calle Mayor 1")
        assert verdict.status == ValidationStatus.INVALID
        assert verdict.source == "disabled"
        assert geocoder_requests == []


class TestDebouncedAddressValidator:
    def test_rapid_edits_issue_one_lookup_for_last_value(self, make_address_validator, geocoder_requests):
        validator = make_address_validator()

        async def scenario():
            debounced = DebouncedAddressValidator(validator, delay_seconds=0.1)
            debounced.submit("Calle Mayor")
            await asyncio.sleep(0.02)
            debounced.submit("Calle Mayor 1")
            await asyncio.sleep(0.02)
            debounced.submit("Calle Mayor 12")
            assert debounced.pending
            return debounced, await debounced.wait()

        debounced, verdict = asyncio.run(scenario())

        assert geocoder_requests == ["Calle Mayor 12"]
        assert debounced.lookups_issued == 1
        assert verdict.status == ValidationStatus.VALID
        assert verdict.address == "Calle Mayor 12"

    def test_short_input_resets_to_idle(self, make_address_validator, geocoder_requests):
        validator = make_address_validator()

        async def scenario():
            debounced = DebouncedAddressValidator(validator, delay_seconds=0.05)
            debounced.submit("Calle Mayor 1")
            debounced.submit("Ca")
            await asyncio.sleep(0.1)
            return debounced.verdict

        verdict = asyncio.run(scenario())

        assert verdict.status == ValidationStatus.IDLE
        assert geocoder_requests == []

    def test_stale_result_is_discarded(self, make_address_validator):
        validator = make_address_validator()
        seen = []

        async def scenario():
            debounced = DebouncedAddressValidator(validator, delay_seconds=0.01, on_result=seen.append)
            debounced.submit("Calle Mayor 1")
            await asyncio.sleep(0)
            # The timer for the first submit is cancelled by the second one
            debounced.submit("Gran Via 2, Madrid")
            return await debounced.wait()

        verdict = asyncio.run(scenario())

        assert verdict.address == "Gran Via 2, Madrid"
        assert [v.address for v in seen] == ["Gran Via 2, Madrid"]

    def test_in_flight_lookup_is_superseded(self, make_address_validator, geocoder_requests):
        started = threading.Event()

        def responder(query):
            if query == "Calle Ancha 1":
                started.set()
                time.sleep(0.2)
                return httpx.Response(200, json={"features": [feature("Calle Ancha", "1")]})
            return httpx.Response(200, json={"features": [feature("Gran Via", "2")]})

        validator = make_address_validator(responder)
        seen = []

        async def scenario():
            debounced = DebouncedAddressValidator(validator, delay_seconds=0.01, on_result=seen.append)
            debounced.submit("Calle Ancha 1")
            while not started.is_set():
                await asyncio.sleep(0.005)
            debounced.submit("Gran Via 2, Madrid")
            verdict = await debounced.wait()
            # Give the slow lookup time to finish in its worker thread
            await asyncio.sleep(0.3)
            return debounced, verdict

        debounced, verdict = asyncio.run(scenario())

        assert geocoder_requests == ["Calle Ancha 1", "Gran Via 2, Madrid"]
        assert verdict.normalized_display.startswith("Gran Via, 2")
        assert debounced.verdict == verdict
        assert [v.address for v in seen] == ["Gran Via 2, Madrid"]

    def test_lookup_waits_for_the_quiet_window(self, make_address_validator, geocoder_requests):
        validator = make_address_validator()
        fired_at = []

        async def scenario():
            debounced = DebouncedAddressValidator(
                validator,
                delay_seconds=1.0,
                on_result=lambda verdict: fired_at.append(time.monotonic()),
            )
            started = time.monotonic()
            debounced.submit("Calle Mayor")
            await asyncio.sleep(0.2)
            debounced.submit("Calle Mayor 1")
            await asyncio.sleep(0.2)
            debounced.submit("Calle Mayor 12")
            verdict = await debounced.wait()
            return started, debounced, verdict

        started, debounced, verdict = asyncio.run(scenario())

        assert geocoder_requests == ["Calle Mayor 12"]
        assert debounced.lookups_issued == 1
        assert len(fired_at) == 1
        assert fired_at[0] - started >= 1.4
        assert verdict.address == "Calle Mayor 12"

    def test_cancel_drops_pending_lookup(self, make_address_validator, geocoder_requests):
        validator = make_address_validator()

        async def scenario():
            debounced = DebouncedAddressValidator(validator, delay_seconds=0.05)
            debounced.submit("Calle Mayor 1")
            debounced.cancel()
            await asyncio.sleep(0.1)
            return debounced.verdict

        verdict = asyncio.run(scenario())

        assert verdict.status == ValidationStatus.IDLE
        assert geocoder_requests == []

    def test_idle_verdict_is_not_pending(self):
        assert not AddressValidation.idle("abc").is_pending
        assert AddressValidation.validating("Calle Mayor").is_pending
