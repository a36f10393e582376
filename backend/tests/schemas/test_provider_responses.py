"""Provider Response Schemas — verifies the fail-closed parsing boundary.

Invariants:
    - Unexpected shapes raise UpstreamProviderError naming the missing fields
    - Unknown fields are ignored
    - Porkbun availability is True only for SUCCESS + "yes"
"""

import pytest

from nexus.core.errors import UpstreamProviderError
from nexus.schemas.provider_responses import (
    GoogleToken, IdentityUser, MetaCampaign, PorkbunAvailability, StripeEvent,
    parse_provider,
)


def test_parse_provider_ignores_unknown_fields():
    token = parse_provider(
        GoogleToken, {"access_token": "ya29", "expires_in": 3599, "id_token": "x"}, "google_ads",
    )
    assert token.access_token == "ya29"
    assert token.refresh_token is None


def test_parse_provider_fails_closed():
    with pytest.raises(UpstreamProviderError) as exc:
        parse_provider(GoogleToken, {"error": "invalid_grant"}, "google_ads")
    assert exc.value.provider == "google_ads"
    assert "access_token" in exc.value.provider_message


def test_parse_provider_rejects_non_object():
    with pytest.raises(UpstreamProviderError):
        parse_provider(StripeEvent, ["not", "an", "object"], "stripe")


def test_identity_user_requires_non_empty_id():
    with pytest.raises(UpstreamProviderError):
        parse_provider(IdentityUser, {"id": ""}, "identity")


@pytest.mark.parametrize("body, expected", [
    ({"status": "SUCCESS", "response": {"avail": "yes", "price": "11.08"}}, True),
    ({"status": "SUCCESS", "avail": "yes"}, True),
    ({"status": "SUCCESS", "response": {"avail": "no"}}, False),
    ({"status": "ERROR", "message": "Invalid API key", "avail": "yes"}, False),
    ({"status": "SUCCESS"}, False),
])
def test_porkbun_availability(body, expected):
    assert parse_provider(PorkbunAvailability, body, "porkbun").available is expected


def test_meta_campaign_flattened_inlines_first_insight_row():
    campaign = parse_provider(MetaCampaign, {
        "id": "1",
        "name": "Spring",
        "insights": {"data": [{"impressions": "100", "clicks": "5", "spend": "3.20"}]},
    }, "meta_ads")
    flat = campaign.flattened()
    assert flat["insights"]["impressions"] == "100"
    assert flat["id"] == "1"


def test_meta_campaign_flattened_without_insights():
    campaign = parse_provider(MetaCampaign, {"id": "1"}, "meta_ads")
    assert campaign.flattened()["insights"] == {}
