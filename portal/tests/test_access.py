import pytest

from portal.services.access import (
    ALL_ROLES,
    VIEW_ROLES,
    decide_access,
    is_authorized,
    permitted_roles,
    views_for_role,
)


@pytest.mark.parametrize('view', sorted(VIEW_ROLES))
@pytest.mark.parametrize('role', sorted(ALL_ROLES))
def test_is_authorized_matches_table(role, view):
    assert is_authorized(role, view) == (role in VIEW_ROLES[view])


@pytest.mark.parametrize('view', sorted(VIEW_ROLES))
def test_unknown_role_is_never_authorized(view):
    assert is_authorized(None, view) is False
    assert is_authorized('nurse', view) is False


def test_role_specific_views():
    assert permitted_roles('admin') == {'admin'}
    assert permitted_roles('patients') == {'doctor', 'admin'}
    assert permitted_roles('doctors') == {'patient', 'admin'}
    assert permitted_roles('appointments.new') == {'patient', 'admin'}
    assert permitted_roles('no-such-view') == frozenset()


def test_decide_access_unauthenticated_redirects_to_sign_in():
    d = decide_access(None, 'dashboard', authenticated=False)
    assert d.outcome == 'redirect' and d.redirect_to == 'auth'


def test_decide_access_unknown_role_is_loading_not_denied():
    d = decide_access(None, 'admin')
    assert d.outcome == 'loading'
    assert d.redirect_to is None
    assert not d.allowed


def test_decide_access_wrong_role_redirects_to_unauthorized():
    d = decide_access('patient', 'admin')
    assert d.as_dict() == {'decision': 'redirect', 'redirectTo': 'unauthorized'}


def test_decide_access_unknown_view_is_unauthorized():
    assert decide_access('admin', 'billing').redirect_to == 'unauthorized'


def test_decide_access_allows_permitted_role():
    assert decide_access('doctor', 'patients').allowed


def test_views_for_role():
    assert 'admin' in views_for_role('admin')
    assert 'doctors' not in views_for_role('doctor')
    assert views_for_role(None) == []
