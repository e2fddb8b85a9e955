"""Scoped opportunity and activity loading against SQLite."""

from dataclasses import replace

import pandas as pd
import pytest

from conftest import insert_row, make_profile
from salescrm.org import AccessControl, OrgQueries
from salescrm.pipeline import PipelineMetrics, PipelineQueries, normalize_activity_type
from salescrm.pipeline.queries import ACTIVITY_COLUMNS


def _queries(engine, viewer):
    return PipelineQueries(AccessControl(viewer, OrgQueries(engine)), engine)


def _opportunity(engine, opp_id, owner, stage='Proposal', status='open', amount=100, **extra):
    row = dict(
        id=opp_id, name=f"Deal {opp_id}", owner_id=owner, amount=amount, stage=stage,
        status=status, is_won=0, is_closed=0, expected_close_date='2026-02-15',
        created_at='2026-01-01', customer_name='PT Contoh',
    )
    row.update(extra)
    insert_row(engine, 'opportunities', **row)


@pytest.fixture
def pipeline_engine(seeded_engine):
    _opportunity(seeded_engine, 'o1', 'u-a1')
    _opportunity(seeded_engine, 'o2', 'u-a2', stage='Closed Won', status='won', is_won=1, amount=500)
    _opportunity(seeded_engine, 'o3', 'u-a3', stage='Closed Lost', status='lost')
    _opportunity(seeded_engine, 'o4', 'u-m2')
    _opportunity(seeded_engine, 'o5', 'u-a1', status='archived')
    _opportunity(seeded_engine, 'o6', 'u-a1')
    insert_row(seeded_engine, 'pipeline_items', opportunity_id='o6', cost_of_goods=10,
               service_costs=0, other_expenses=0, status='open')
    return seeded_engine


def _ids(df):
    return sorted(df['id'].tolist()) if not df.empty else []


class TestOpportunities:
    def test_admin_sees_every_non_archived_opportunity(self, pipeline_engine, org):
        profiles, _ = org
        df = _queries(pipeline_engine, profiles['admin']).get_opportunities(exclude_promoted=False)
        assert _ids(df) == ['o1', 'o2', 'o3', 'o4', 'o6']

    def test_manager_sees_resolved_team(self, pipeline_engine, org):
        profiles, _ = org
        df = _queries(pipeline_engine, profiles['m1']).get_opportunities(exclude_promoted=False)
        assert _ids(df) == ['o1', 'o2', 'o3', 'o6']

    def test_promoted_opportunities_are_excluded_by_default(self, pipeline_engine, org):
        profiles, _ = org
        df = _queries(pipeline_engine, profiles['a1']).get_opportunities()
        assert _ids(df) == ['o1']

    def test_account_manager_cannot_select_another_rep(self, pipeline_engine, org):
        profiles, _ = org
        queries = _queries(pipeline_engine, profiles['a1'])

        assert queries.get_opportunities(selected_rep='u-a2').empty
        assert queries.resolve_owner_ids('u-a2') == (False, [])

    def test_manager_rep_filter(self, pipeline_engine, org):
        profiles, _ = org
        df = _queries(pipeline_engine, profiles['m1']).get_opportunities(selected_rep='u-a2', exclude_promoted=False)
        assert _ids(df) == ['o2']

    def test_viewer_without_login_id_gets_nothing(self, pipeline_engine):
        viewer = replace(make_profile('ghost', 'account_manager', manager_id='m1'), user_id=None)
        assert _queries(pipeline_engine, viewer).get_opportunities().empty

    def test_open_only(self, pipeline_engine, org):
        profiles, _ = org
        df = _queries(pipeline_engine, profiles['m1']).get_opportunities(exclude_promoted=False, open_only=True)
        assert _ids(df) == ['o1', 'o6']

    def test_won_opportunities_in_window(self, pipeline_engine, org):
        profiles, _ = org
        queries = _queries(pipeline_engine, profiles['admin'])
        assert _ids(queries.get_won_opportunities(None, '2026-01-01', '2026-03-31')) == ['o2']
        assert queries.get_won_opportunities(None, '2026-04-01', '2026-06-30').empty
        assert queries.get_won_opportunities([]).empty


class TestHeadDrilldown:
    def test_unmapped_manager_in_head_team(self, pipeline_engine, org):
        profiles, _ = org
        with pipeline_engine.begin() as conn:
            conn.exec_driver_sql("DELETE FROM manager_team_members")
        members, df = _queries(pipeline_engine, profiles['head']).get_head_drilldown('m1')

        assert members[0].id == 'm1'
        assert _ids(df) == ['o1', 'o2', 'o6']

    def test_manager_mapped_outside_head_team_shows_own_deals_only(self, pipeline_engine, org):
        profiles, _ = org
        _opportunity(pipeline_engine, 'o7', 'u-m1')
        members, df = _queries(pipeline_engine, profiles['head']).get_head_drilldown('m1')

        assert [m.id for m in members] == ['m1']
        assert _ids(df) == ['o7']

    def test_manager_outside_head_team_returns_empty(self, pipeline_engine, org):
        profiles, _ = org
        members, df = _queries(pipeline_engine, profiles['head']).get_head_drilldown('m2')

        assert members == []
        assert df.empty


class TestActivities:
    def test_v2_activities_are_scoped_and_normalised(self, seeded_engine, org):
        profiles, _ = org
        insert_row(seeded_engine, 'sales_activity_v2', id='x1', activity_type='meeting', customer_name=None,
                   notes=None, mom_text='Minutes', created_by='u-a1', scheduled_at='2026-01-03',
                   created_at='2026-01-02')
        insert_row(seeded_engine, 'sales_activity_v2', id='x2', activity_type='visit', customer_name='PT B',
                   notes='n', mom_text=None, created_by='u-m2', scheduled_at=None, created_at='2026-01-04')

        df = _queries(seeded_engine, profiles['a1']).get_activities()

        assert list(df.columns) == ACTIVITY_COLUMNS
        assert df['id'].tolist() == ['x1']
        row = df.iloc[0]
        assert row['activity_type'] == 'Meeting'
        assert row['customer_name'] == '-'
        assert row['notes'] == 'Minutes'
        assert row['owner_id'] == 'u-a1'

    def test_falls_back_to_legacy_table(self, legacy_engine):
        viewer = make_profile('a1', 'account_manager', manager_id='m1')
        insert_row(legacy_engine, 'sales_activity', id='l1', activity_type='Email', customer_name='PT A',
                   notes='hello', user_id='u-a1', activity_time='2026-01-05', created_at='2026-01-05')
        insert_row(legacy_engine, 'sales_activity', id='l2', activity_type='Call', customer_name='PT A',
                   notes='other', user_id='u-zz', activity_time='2026-01-05', created_at='2026-01-05')

        df = _queries(legacy_engine, viewer).get_activities()

        assert df['id'].tolist() == ['l1']
        assert df.iloc[0]['activity_type'] == 'Email'
        assert df.iloc[0]['activity_time'] == '2026-01-05'


@pytest.mark.parametrize("value, expected", [
    ('call', 'Call'), ('EMAIL', 'Email'), ('Meeting', 'Meeting'), ('visit', 'Call'), (None, 'Call'),
])
def test_normalize_activity_type(value, expected):
    assert normalize_activity_type(value) == expected


class TestPipelineMetrics:
    def test_by_stage_follows_pipeline_order(self):
        df = pd.DataFrame([
            {'id': 1, 'stage': 'Negotiation', 'amount': 300, 'status': 'open', 'is_won': False},
            {'id': 2, 'stage': 'Qualification', 'amount': 100, 'status': 'open', 'is_won': False},
            {'id': 3, 'stage': 'Qualification', 'amount': 100, 'status': 'open', 'is_won': False},
            {'id': 4, 'stage': 'Custom', 'amount': 500, 'status': 'open', 'is_won': False},
        ])
        by_stage = PipelineMetrics(df).pipeline_by_stage()

        assert by_stage['stage'].tolist() == ['Qualification', 'Negotiation', 'Custom']
        assert by_stage['count'].tolist() == [2, 1, 1]
        assert by_stage['share'].tolist() == [20.0, 30.0, 50.0]

    def test_summary(self):
        df = pd.DataFrame([
            {'id': 1, 'stage': 'Proposal', 'amount': 100, 'status': 'open', 'is_won': False},
            {'id': 2, 'stage': 'Closed Won', 'amount': 400, 'status': 'won', 'is_won': True},
            {'id': 3, 'stage': 'Proposal', 'amount': 200, 'status': 'won', 'is_won': True},
            {'id': 4, 'stage': 'Closed Lost', 'amount': 50, 'status': 'lost', 'is_won': False},
        ])
        summary = PipelineMetrics(df).summary()

        assert summary['open_count'] == 1
        assert summary['open_value'] == 100
        assert summary['won_count'] == 2
        assert summary['lost_count'] == 1
        assert summary['win_rate'] == pytest.approx(66.7)
        assert summary['avg_won_amount'] == 300

    def test_empty(self):
        assert PipelineMetrics(pd.DataFrame()).summary()['win_rate'] == 0.0
