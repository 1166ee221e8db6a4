import copy
import json
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timedelta

import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from models import (  # noqa: E402
    Actor,
    Competition,
    CompetitionEvent,
    CompetitionGroup,
    EventSelection,
    Registration,
    RegistrationExtra,
    Team,
    UserRole,
)


class InMemoryDatabase:
    """按 DatabaseManager 的 *_with_conn 约定实现的内存存储。

    transaction() 在进入时做快照，异常时恢复快照，用来验证事务原子性。
    fail_on 可指定某个方法名，在其被调用第 N 次时抛出异常。
    """

    def __init__(self):
        self.tables = {
            'users': {},
            'competitions': {},
            'competition_events': {},
            'competition_groups': {},
            'teams': {},
            'competition_registrations': {},
            'competition_registration_events': [],
        }
        self._next_id = 1
        self.commits = 0
        self.rollbacks = 0
        self.fail_on = None
        self._calls = {}

    # -- 基础设施 -------------------------------------------------------

    def _new_id(self):
        value = self._next_id
        self._next_id += 1
        return value

    def _maybe_fail(self, name):
        self._calls[name] = self._calls.get(name, 0) + 1
        if self.fail_on and self.fail_on[0] == name and self._calls[name] >= self.fail_on[1]:
            raise RuntimeError(f'injected failure in {name}')

    @contextmanager
    def transaction(self):
        snapshot = copy.deepcopy((self.tables, self._next_id))
        try:
            yield object()
            self.commits += 1
        except Exception:
            self.tables, self._next_id = snapshot
            self.rollbacks += 1
            raise

    # -- 测试数据 -------------------------------------------------------

    def add_user(self, display_name=None, phone=None, role='team'):
        user_id = self._new_id()
        self.tables['users'][user_id] = {
            'id': user_id, 'display_name': display_name, 'phone': phone, 'role': role,
        }
        return user_id

    def add_competition(self, name='春季田径赛', created_by=None, signup_start_at=None, signup_end_at=None):
        competition_id = self._new_id()
        self.tables['competitions'][competition_id] = {
            'id': competition_id,
            'name': name,
            'location': None,
            'start_at': None,
            'end_at': None,
            'signup_start_at': signup_start_at,
            'signup_end_at': signup_end_at,
            'created_by': created_by,
            'created_at': datetime(2026, 1, 1),
        }
        return competition_id

    def add_event(self, competition_id, name, category='track', unit_type='individual'):
        event_id = self._new_id()
        self.tables['competition_events'][event_id] = {
            'id': event_id, 'competition_id': competition_id, 'name': name,
            'category': category, 'unit_type': unit_type,
        }
        return event_id

    def add_group(self, competition_id, name, gender='mixed'):
        group_id = self._new_id()
        self.tables['competition_groups'][group_id] = {
            'id': group_id, 'competition_id': competition_id, 'name': name, 'gender': gender,
        }
        return group_id

    # -- 目录 -----------------------------------------------------------

    def get_competition_with_conn(self, conn, competition_id):
        row = self.tables['competitions'].get(competition_id)
        return Competition.from_row(row) if row else None

    def get_competition_events_with_conn(self, conn, competition_id, event_ids=None):
        rows = [
            row for row in self.tables['competition_events'].values()
            if row['competition_id'] == competition_id
            and (event_ids is None or row['id'] in event_ids)
        ]
        return [CompetitionEvent.from_row(row) for row in rows]

    def get_competition_groups_with_conn(self, conn, competition_id, group_ids=None):
        rows = [
            row for row in self.tables['competition_groups'].values()
            if row['competition_id'] == competition_id
            and (group_ids is None or row['id'] in group_ids)
        ]
        return [CompetitionGroup.from_row(row) for row in rows]

    # -- 队伍 -----------------------------------------------------------

    def get_team_with_conn(self, conn, team_id):
        row = self.tables['teams'].get(team_id)
        return Team.from_row(row) if row else None

    def get_team_by_owner_with_conn(self, conn, user_id, for_update=False):
        for row in self.tables['teams'].values():
            if row['user_id'] == user_id:
                return Team.from_row(row)
        return None

    def ensure_team_with_conn(self, conn, user_id):
        team = self.get_team_by_owner_with_conn(conn, user_id, for_update=True)
        if team:
            return team
        user = self.tables['users'].get(user_id, {})
        name = user.get('display_name') or user.get('phone') or '未命名队伍'
        team_id = self._new_id()
        self.tables['teams'][team_id] = {
            'id': team_id, 'name': name, 'contact_phone': user.get('phone'),
            'members': '[]', 'user_id': user_id, 'created_at': datetime(2026, 1, 1),
        }
        return Team.from_row(self.tables['teams'][team_id])

    def upsert_team_with_conn(self, conn, user_id, name, contact_phone=None, members=None):
        payload = json.dumps([m.to_dict() for m in (members or [])], ensure_ascii=False)
        for row in self.tables['teams'].values():
            if row['user_id'] == user_id:
                row.update({'name': name, 'contact_phone': contact_phone, 'members': payload})
                return row['id']
        team_id = self._new_id()
        self.tables['teams'][team_id] = {
            'id': team_id, 'name': name, 'contact_phone': contact_phone,
            'members': payload, 'user_id': user_id, 'created_at': datetime(2026, 1, 1),
        }
        return team_id

    def save_team_members_with_conn(self, conn, team_id, members):
        self._maybe_fail('save_team_members_with_conn')
        self.tables['teams'][team_id]['members'] = json.dumps(
            [m.to_dict() for m in members], ensure_ascii=False
        )

    # -- 报名 -----------------------------------------------------------

    def get_team_registrations_with_conn(self, conn, competition_id, team_id):
        rows = sorted(
            (row for row in self.tables['competition_registrations'].values()
             if row['competition_id'] == competition_id and row['team_id'] == team_id),
            key=lambda row: row['id'],
        )
        return [Registration.from_row(row) for row in rows]

    def insert_registration_with_conn(self, conn, registration):
        self._maybe_fail('insert_registration_with_conn')
        registration_id = self._new_id()
        self.tables['competition_registrations'][registration_id] = {
            'id': registration_id,
            'competition_id': registration.competition_id,
            'user_id': registration.user_id,
            'team_id': registration.team_id,
            'participant_name': registration.participant_name,
            'participant_gender': registration.gender,
            'participant_identity': registration.identity_type,
            'contact': registration.contact,
            'extra': json.dumps(registration.extra.to_json(), ensure_ascii=False),
            'attachments': json.dumps([a.to_dict() for a in registration.attachments]),
            'status': registration.status.value,
            'created_at': registration.created_at,
            'updated_at': registration.updated_at,
        }
        return registration_id

    def update_registration_fields_with_conn(self, conn, registration_id, fields):
        self._maybe_fail('update_registration_fields_with_conn')
        row = self.tables['competition_registrations'].get(registration_id)
        if row is None:
            return False
        for key, value in fields.items():
            if key == 'extra':
                value = json.dumps(
                    value.to_json() if isinstance(value, RegistrationExtra) else value,
                    ensure_ascii=False,
                )
            elif key == 'attachments':
                value = json.dumps([a.to_dict() for a in value])
            elif key == 'status':
                value = getattr(value, 'value', value)
            row[key] = value
        row['updated_at'] = datetime.now()
        return True

    def set_registration_status_with_conn(self, conn, registration_id, status):
        return self.update_registration_fields_with_conn(conn, registration_id, {'status': status})

    def replace_selections_with_conn(self, conn, registration_id, selections):
        self._maybe_fail('replace_selections_with_conn')
        links = [
            link for link in self.tables['competition_registration_events']
            if link['registration_id'] != registration_id
        ]
        for selection in selections:
            if any(l['registration_id'] == registration_id and l['event_id'] == selection.event_id
                   for l in links):
                raise RuntimeError('duplicate (registration_id, event_id)')
            links.append({
                'registration_id': registration_id,
                'event_id': selection.event_id,
                'group_id': selection.group_id,
            })
        self.tables['competition_registration_events'] = links

    def _hydrate(self, row):
        registration = Registration.from_row(dict(
            row,
            competition_name=self.tables['competitions'][row['competition_id']]['name'],
            team_name=(self.tables['teams'].get(row['team_id']) or {}).get('name'),
        ))
        registration.selections = [
            EventSelection(
                registration_id=link['registration_id'],
                event_id=link['event_id'],
                group_id=link['group_id'],
                event_name=self.tables['competition_events'][link['event_id']]['name'],
            )
            for link in self.tables['competition_registration_events']
            if link['registration_id'] == row['id']
        ]
        return registration

    def get_registration_with_conn(self, conn, registration_id):
        row = self.tables['competition_registrations'].get(registration_id)
        return self._hydrate(row) if row else None

    def list_registrations_with_conn(self, conn, user_id=None, organizer_id=None,
                                     competition_id=None, status=None, page=1, page_size=20):
        rows = []
        for row in self.tables['competition_registrations'].values():
            competition = self.tables['competitions'][row['competition_id']]
            if organizer_id is not None and competition['created_by'] != organizer_id:
                continue
            if user_id is not None and row['user_id'] != user_id:
                continue
            if competition_id is not None and row['competition_id'] != competition_id:
                continue
            if status is not None and row['status'] != getattr(status, 'value', status):
                continue
            rows.append(row)
        rows.sort(key=lambda row: (row['created_at'], row['id']), reverse=True)
        start = (page - 1) * page_size
        return [self._hydrate(row) for row in rows[start:start + page_size]], len(rows)

    # -- 断言辅助 -------------------------------------------------------

    def registrations(self, competition_id=None):
        return [
            self._hydrate(row) for row in sorted(
                self.tables['competition_registrations'].values(), key=lambda r: r['id'])
            if competition_id is None or row['competition_id'] == competition_id
        ]

    def selections_of(self, registration_id):
        return [
            (link['registration_id'], link['event_id'], link['group_id'])
            for link in self.tables['competition_registration_events']
            if link['registration_id'] == registration_id
        ]


@pytest.fixture
def db():
    return InMemoryDatabase()


@pytest.fixture
def now():
    return datetime(2026, 5, 1, 12, 0, 0)


@pytest.fixture
def open_window(now):
    return {'signup_start_at': now - timedelta(days=1), 'signup_end_at': now + timedelta(days=1)}


@pytest.fixture
def admin(db):
    return Actor(db.add_user('管理员', role='admin'), UserRole.ADMIN)


@pytest.fixture
def organizer(db):
    return Actor(db.add_user('组织者', role='organizer'), UserRole.ORGANIZER)


@pytest.fixture
def team_owner(db):
    return Actor(db.add_user('飞人队', phone='13800138000'), UserRole.TEAM)


@pytest.fixture
def participant(db):
    return Actor(db.add_user('张三', role='participant'), UserRole.PARTICIPANT)


@pytest.fixture
def app(db):
    from app import create_app

    application = create_app('testing', db_manager=db)
    return application


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, actor):
    with client.session_transaction() as sess:
        sess['logged_in'] = True
        sess['user_id'] = actor.user_id
        sess['user_role'] = actor.role.value
