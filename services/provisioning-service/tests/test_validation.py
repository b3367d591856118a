from __future__ import annotations

import pytest

from provisioning.domain.account import DirectoryUser
from provisioning.domain.validation import validate_profile


def test_complete_profile_passes():
    user = DirectoryUser(username="carol", first_name="Carol", last_name="Diaz", email="carol@example.com")
    assert validate_profile(user) is None


@pytest.mark.parametrize(
    "first_name, last_name",
    [("Carol", "Diaz"), (None, "Diaz"), ("Carol", None), (None, None)],
)
def test_missing_email_is_reported_first(first_name, last_name):
    user = DirectoryUser(username="carol", first_name=first_name, last_name=last_name, email=None)
    missing = validate_profile(user)
    assert missing is not None
    assert missing.field == "email"


@pytest.mark.parametrize("last_name", ["Diaz", None])
def test_missing_first_name_reported_when_email_present(last_name):
    user = DirectoryUser(username="carol", first_name=None, last_name=last_name, email="c@example.com")
    assert validate_profile(user).field == "first_name"


def test_missing_last_name_reported_last():
    user = DirectoryUser(username="bob", first_name="Bob", last_name=None, email="bob@example.com")
    missing = validate_profile(user)
    assert missing.field == "last_name"
    assert missing.label == "lastname"


@pytest.mark.parametrize("blank", ["", "   "])
def test_blank_values_count_as_missing(blank):
    user = DirectoryUser(username="dave", first_name="Dave", last_name="Lee", email=blank)
    assert validate_profile(user).field == "email"
