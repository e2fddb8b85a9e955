"""Admin user management, entity / team management and staged drafts."""

from unittest.mock import patch

import pytest

from conftest import ENTITY_ID, insert_row, make_profile
from salescrm.admin import AdminUserQueries, OrgUnitManager, UserUpdateDrafts
from salescrm.errors import PermissionDenied
from salescrm.events import bus, OrgEvent
from salescrm.org import OrgQueries

ADMIN_RPC = 'salescrm.admin.queries.call_rpc'
ORG_RPC = 'salescrm.admin.org_units.call_rpc'


@pytest.fixture
def admin_profile():
    return make_profile('admin', 'admin', entity_id=None, division_id=None)


@pytest.fixture
def admin(admin_profile):
    return AdminUserQueries(admin_profile)


@pytest.fixture
def events():
    received = []
    for event in OrgEvent:
        bus.subscribe(event, lambda payload, event=event: received.append((event, payload)))
    return received


def test_non_admins_are_refused():
    with pytest.raises(PermissionDenied):
        AdminUserQueries(make_profile('m1', 'manager'))
    with pytest.raises(PermissionDenied):
        OrgUnitManager(make_profile('head', 'head'))
    with pytest.raises(PermissionDenied):
        AdminUserQueries(None)


class TestUserListing:
    def test_role_filter_and_pending_role(self, admin):
        rows = [
            {'id': 'p1', 'email': 'a@example.com', 'role': 'manager', 'entity_id': 'e', 'division_id': 't'},
            {'id': 'p2', 'email': 'b@example.com', 'role': None},
        ]
        with patch(ADMIN_RPC, return_value=rows) as rpc:
            df = admin.get_users_with_profiles('  ann ', 'all')

        assert rpc.call_args[0][1] == {'p_query': 'ann', 'p_role': None}
        assert df['role'].tolist() == ['manager', 'pending']
        assert 'created_at' in df.columns

    def test_role_is_passed_through(self, admin):
        with patch(ADMIN_RPC, return_value=[]) as rpc:
            df = admin.get_users_with_profiles('', 'head')

        assert rpc.call_args[0][1] == {'p_query': None, 'p_role': 'head'}
        assert df.empty

    def test_rpc_error_returns_empty(self, admin):
        with patch(ADMIN_RPC, side_effect=RuntimeError("down")):
            assert admin.get_users_with_profiles().empty

    def test_pending_users(self, admin):
        rows = [
            {'id': 'p1', 'role': 'manager', 'entity_id': 'e', 'division_id': 't'},
            {'id': 'p2', 'role': 'manager', 'entity_id': 'e'},
            {'id': 'p3', 'role': None},
        ]
        with patch(ADMIN_RPC, return_value=rows):
            df = admin.get_pending_users()

        assert df['id'].tolist() == ['p2', 'p3']


class TestUpdateUserProfile:
    def test_success_publishes_users_changed(self, admin, events):
        with patch(ADMIN_RPC, return_value=[{'admin_update_user_profile': True}]) as rpc:
            success, message = admin.update_user_profile('p1', 'manager', 'e', 't', 'none')

        assert (success, message) == (True, "User updated successfully")
        assert rpc.call_args[0][1] == {
            'p_profile_id': 'p1', 'p_role': 'manager', 'p_entity_id': 'e',
            'p_division_id': 't', 'p_manager_id': None,
        }
        assert events == [(OrgEvent.USERS_CHANGED, {'profile_id': 'p1'})]

    def test_missing_fields_block_the_rpc(self, admin):
        with patch(ADMIN_RPC) as rpc:
            success, message = admin.update_user_profile('p1', 'account_manager', 'e', None, None)

        assert not success
        assert message == "Account Manager requires team and manager"
        rpc.assert_not_called()

    def test_falsy_result_means_not_found(self, admin):
        with patch(ADMIN_RPC, return_value=[{'admin_update_user_profile': False}]):
            assert admin.update_user_profile('p1', 'admin') == (
                False, "Update failed: User profile not found or update failed."
            )

    @pytest.mark.parametrize("raw, friendly", [
        ("Manager must have entity and team", "Validation failed: Manager must have entity and team. "
                                              "Please ensure all required fields are set for this role."),
        ("Only admins can update user profiles", "You must be an admin to update user profiles."),
        ("connection reset", "connection reset"),
    ])
    def test_rpc_errors_are_humanised(self, admin, raw, friendly):
        with patch(ADMIN_RPC, side_effect=RuntimeError(raw)):
            assert admin.update_user_profile('p1', 'admin') == (False, friendly)

    def test_role_assignment_message(self, admin):
        with patch(ADMIN_RPC, return_value=[{'admin_update_user_profile': True}]):
            success, message = admin.save_role_assignment('p1', 'head', 'e')
        assert success
        assert message == "Role assigned. The user can now access their dashboard."


class TestDeleteUser:
    def test_cannot_delete_self(self, admin):
        with patch(ADMIN_RPC) as rpc:
            assert admin.delete_user('admin') == (False, "Cannot delete your own account")
        rpc.assert_not_called()

    def test_json_result(self, admin, events):
        result = '{"success": true, "message": "User deleted"}'
        with patch(ADMIN_RPC, return_value=[{'admin_delete_user': result}]) as rpc:
            assert admin.delete_user('p1') == (True, "User deleted")

        assert rpc.call_args[0][1] == {'p_id': 'p1'}
        assert events == [(OrgEvent.USERS_CHANGED, {'profile_id': 'p1'})]

    def test_rejected(self, admin, events):
        result = {'success': False, 'error': 'Only admins can delete users'}
        with patch(ADMIN_RPC, return_value=[{'admin_delete_user': result}]):
            assert admin.delete_user('p1') == (False, "You must be an admin to delete users.")
        assert events == []


class TestDrafts:
    ROW = {'role': 'manager', 'entity_id': 'e', 'division_id': 't', 'manager_id': None}

    def test_staging_stored_values_is_not_dirty(self):
        drafts = UserUpdateDrafts()
        drafts.load('p1', self.ROW)
        for field, value in self.ROW.items():
            drafts.stage('p1', field, value)
        drafts.stage('p1', 'manager_id', 'none')

        assert not drafts.is_dirty('p1')
        assert drafts.dirty_ids() == []

    def test_reverting_a_change_clears_it(self):
        drafts = UserUpdateDrafts()
        drafts.load('p1', self.ROW)
        drafts.stage('p1', 'role', 'head')
        assert drafts.changes('p1') == {'role': 'head'}

        drafts.stage('p1', 'role', 'manager')
        assert not drafts.is_dirty('p1')

    def test_pending_role_equals_no_role(self):
        drafts = UserUpdateDrafts()
        drafts.load('p1', {'role': 'pending'})
        drafts.stage('p1', 'role', None)
        assert not drafts.is_dirty('p1')

    def test_clean_save_makes_no_rpc(self, admin):
        drafts = UserUpdateDrafts()
        drafts.load('p1', self.ROW)
        with patch(ADMIN_RPC) as rpc:
            assert drafts.save('p1', admin) == (True, "No changes to save")
        rpc.assert_not_called()

    def test_save_writes_merged_values(self, admin):
        drafts = UserUpdateDrafts()
        drafts.load('p1', self.ROW)
        drafts.stage('p1', 'division_id', 't2')

        with patch(ADMIN_RPC, return_value=[{'admin_update_user_profile': True}]) as rpc:
            success, _ = drafts.save('p1', admin)

        assert success
        assert rpc.call_args[0][1]['p_division_id'] == 't2'
        assert rpc.call_args[0][1]['p_role'] == 'manager'
        assert not drafts.is_dirty('p1')
        assert drafts.merged('p1')['division_id'] == 't2'

    def test_failed_save_keeps_draft(self, admin):
        drafts = UserUpdateDrafts()
        drafts.load('p1', self.ROW)
        drafts.stage('p1', 'role', 'account_manager')

        with patch(ADMIN_RPC) as rpc:
            success, message = drafts.save('p1', admin)

        assert not success
        assert message == "Account Manager requires manager"
        rpc.assert_not_called()
        assert drafts.is_dirty('p1')

    def test_pending_user_needs_an_explicit_role(self, admin):
        drafts = UserUpdateDrafts()
        drafts.load('p1', {'role': 'pending'})
        drafts.stage('p1', 'entity_id', 'e')

        with patch(ADMIN_RPC) as rpc:
            assert drafts.save('p1', admin) == (False, "A role must be assigned")
        rpc.assert_not_called()
        assert drafts.changes('p1') == {'entity_id': 'e'}

    def test_reload_prunes_changes_that_now_match(self):
        drafts = UserUpdateDrafts()
        drafts.load('p1', self.ROW)
        drafts.stage('p1', 'role', 'head')
        drafts.load('p1', {**self.ROW, 'role': 'head'})
        assert not drafts.is_dirty('p1')

    def test_unknown_field_or_profile(self):
        drafts = UserUpdateDrafts()
        drafts.load('p1', self.ROW)
        with pytest.raises(KeyError):
            drafts.stage('p1', 'email', 'x')
        with pytest.raises(KeyError):
            drafts.stage('p2', 'role', 'head')


class TestOrgUnits:
    def test_team_round_trip(self, engine, admin_profile, events):
        units = OrgUnitManager(admin_profile, engine)
        success, _, team_id = units.create_team("Enterprise", ENTITY_ID)
        assert success

        teams = OrgQueries(engine).get_teams(ENTITY_ID)
        assert teams['id'].tolist() == [team_id]
        assert OrgQueries(engine).get_teams('other-entity').empty

        assert units.update_team(team_id, "Enterprise East", ENTITY_ID) == (True, "Team updated successfully")
        assert OrgQueries(engine).get_teams(ENTITY_ID)['name'].tolist() == ["Enterprise East"]

        assert units.delete_team(team_id) == (True, "Team deleted successfully")
        assert OrgQueries(engine).get_teams(ENTITY_ID).empty
        assert [e for e, _ in events] == [OrgEvent.ORG_UNITS_CHANGED] * 3

    def test_team_validation_and_missing(self, engine, admin_profile):
        units = OrgUnitManager(admin_profile, engine)
        assert units.create_team("  ", ENTITY_ID) == (False, "Team name is required", None)
        assert units.update_team('missing', "X") == (False, "Team not found")
        assert units.delete_team('missing') == (False, "Team not found")

    def test_create_entity(self, admin_profile, events):
        units = OrgUnitManager(admin_profile)
        with patch(ORG_RPC, return_value=[{'admin_create_entity': 'ent-9'}]) as rpc:
            assert units.create_entity(" PT Baru ", "") == (True, "Entity created successfully", 'ent-9')

        assert rpc.call_args[0][1] == {'p_name': 'PT Baru', 'p_code': None}
        assert events == [(OrgEvent.ORG_UNITS_CHANGED, {'entity_id': 'ent-9'})]

    def test_entity_rpc_errors(self, admin_profile, events):
        units = OrgUnitManager(admin_profile)
        with patch(ORG_RPC, side_effect=RuntimeError("Only admins may do this")):
            assert units.delete_entity('ent-1') == (False, "You must be an admin to delete entities.")
        with patch(ORG_RPC, return_value=[{'admin_update_entity': False}]):
            assert units.update_entity('ent-1', "Name") == (False, "Entity not found")
        assert units.create_entity("") == (False, "Entity name is required", None)
        assert events == []

    def test_entities_listing(self, engine):
        insert_row(engine, 'entities', id='e2', name='Beta', code='B', is_active=0)
        insert_row(engine, 'entities', id='e1', name='Alpha', code='A', is_active=1)

        queries = OrgQueries(engine)
        assert queries.get_entities()['name'].tolist() == ['Alpha', 'Beta']
        assert queries.get_entities(active_only=True)['id'].tolist() == ['e1']
