from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import select
from docubuddy.errors import (AlreadyMember, NotFound, PermissionDenied, TransientIOFailure,
                              UserNotFound, ValidationError)
from docubuddy.models import Profile, TeamMember
from docubuddy.services.membership import (add_member, add_member_by_email, find_user_by_email,
                                           list_members, remove_member, search_users)
from docubuddy.services.teams import create_team


@pytest.fixture()
def team(session, admin_context):
    return create_team(admin_context, session, "Platform")


def test_add_member_by_email(session, admin_context, team, signup):
    member = signup("dana@example.com", full_name="Dana Scully")
    membership = add_member_by_email(admin_context, session, team.id, " dana@example.com ")
    assert membership.user_id == member.id
    assert membership.added_by == admin_context.actor.id
    # The team is the working team, so the local view picks it up
    assert [view.email for view in admin_context.members] == ["dana@example.com"]
    assert admin_context.members[0].team == "Platform"


def test_add_member_requires_email_and_team(session, admin_context, team):
    with pytest.raises(ValidationError) as exc:
        add_member_by_email(admin_context, session, team.id, "  ")
    assert exc.value.message == "Please enter an email and select a team"
    with pytest.raises(ValidationError):
        add_member_by_email(admin_context, session, None, "dana@example.com")


def test_add_unknown_user(session, admin_context, team):
    with pytest.raises(UserNotFound) as exc:
        add_member_by_email(admin_context, session, team.id, "ghost@example.com")
    assert "ghost@example.com" in exc.value.message


def test_email_lookup_is_case_sensitive(session, signup):
    signup("dana@example.com")
    with pytest.raises(UserNotFound):
        find_user_by_email(session, "Dana@example.com")


def test_duplicate_membership(session, admin_context, team, signup):
    signup("dana@example.com")
    add_member_by_email(admin_context, session, team.id, "dana@example.com")
    with pytest.raises(AlreadyMember) as exc:
        add_member_by_email(admin_context, session, team.id, "dana@example.com")
    assert exc.value.message == "This user is already a member of the selected team"
    assert len(session.exec(select(TeamMember)).all()) == 1


def test_only_owner_adds_members(session, team, signup, context_for):
    other = context_for(signup("rival@example.com", role="admin"), "admin")
    member = signup("dana@example.com")
    with pytest.raises(PermissionDenied):
        add_member(other, session, team.id, member.id)
    with pytest.raises(NotFound):
        add_member(other, session, "missing-team", member.id)


def test_list_members_newest_first_with_name_fallback(session, admin_context, team, signup):
    named = signup("named@example.com", full_name="Named Person")
    anonymous = signup("anon.user@example.com")
    profile = session.get(Profile, anonymous.id)
    profile.full_name = ""
    session.add(profile)
    base = datetime(2024, 5, 1, tzinfo=timezone.utc)
    session.add(TeamMember(team_id=team.id, user_id=named.id, added_by=admin_context.actor.id,
                           added_at=base))
    session.add(TeamMember(team_id=team.id, user_id=anonymous.id, added_by=admin_context.actor.id,
                           added_at=base + timedelta(minutes=1)))
    session.commit()

    members = list_members(admin_context, session, team.id)
    assert [member.name for member in members] == ["anon.user", "Named Person"]
    assert admin_context.members == members


def test_list_members_uses_stored_team_name(session, admin_context, team, signup):
    member = signup("dana@example.com")
    add_member(admin_context, session, team.id, member.id)
    admin_context.teams = []
    members = list_members(admin_context, session, team.id)
    assert members[0].team == "Platform"


def test_remove_member(session, admin_context, team, signup):
    signup("dana@example.com")
    membership = add_member_by_email(admin_context, session, team.id, "dana@example.com")
    assert remove_member(admin_context, session, membership.id)
    assert session.get(TeamMember, membership.id) is None
    assert admin_context.members == []
    # Removing it again is fine
    assert remove_member(admin_context, session, membership.id)


def test_search_users(session, signup):
    signup("dana@example.com", full_name="Dana Scully")
    signup("fox@example.com", full_name="Fox Mulder")
    assert [p.email for p in search_users(session, "SCULLY")] == ["dana@example.com"]
    assert len(search_users(session, "example")) == 2
    assert search_users(session, "   ") == []
    assert search_users(session, "100%") == []


def test_store_outage_during_lookup_is_transient():
    session = MagicMock()
    session.exec.side_effect = OperationalError("SELECT profiles", {}, Exception("db down"))
    with pytest.raises(TransientIOFailure):
        find_user_by_email(session, "dana@example.com")
