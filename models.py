#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
赛事报名系统 - 数据模型定义
"""

import json
from datetime import datetime
from enum import Enum


class UserRole(Enum):
    """用户角色枚举"""
    ADMIN = 'admin'                # 管理员
    ORGANIZER = 'organizer'        # 赛事组织者
    PARTICIPANT = 'participant'    # 个人参赛者
    TEAM = 'team'                  # 队伍账号


class RegistrationStatus(Enum):
    """报名状态枚举"""
    PENDING = 'pending'            # 待审核
    APPROVED = 'approved'          # 已通过
    REJECTED = 'rejected'          # 已驳回
    CANCELLED = 'cancelled'        # 已撤销（软删除）


class EventUnitType(Enum):
    """项目参赛单位"""
    INDIVIDUAL = 'individual'
    TEAM = 'team'


def _load_json(value, default):
    """数据库 JSON 列可能以字符串、bytes 或已解析对象返回"""
    if value is None:
        return default
    if isinstance(value, (bytes, bytearray)):
        value = value.decode('utf-8')
    if isinstance(value, str):
        if not value.strip():
            return default
        return json.loads(value)
    return value


def _iso(value):
    return value.isoformat() if value else None


class Actor:
    """当前请求的操作者（由会话中的 user_id / user_role 构造）"""

    def __init__(self, user_id, role):
        self.user_id = user_id
        self.role = role if isinstance(role, UserRole) else UserRole(role)

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN

    @property
    def is_organizer(self):
        return self.role == UserRole.ORGANIZER

    @property
    def is_staff(self):
        return self.role in (UserRole.ADMIN, UserRole.ORGANIZER)

    def __repr__(self):
        return f"Actor(user_id={self.user_id!r}, role={self.role.value})"


class Competition:
    """赛事模型（只读目录数据）"""
    def __init__(self, competition_id=None, name=None, location=None,
                 start_at=None, end_at=None, signup_start_at=None, signup_end_at=None,
                 created_by=None, created_at=None):
        self.competition_id = competition_id
        self.name = name
        self.location = location
        self.start_at = start_at
        self.end_at = end_at
        self.signup_start_at = signup_start_at
        self.signup_end_at = signup_end_at
        self.created_by = created_by
        self.created_at = created_at

    @classmethod
    def from_row(cls, row):
        return cls(
            competition_id=row['id'],
            name=row.get('name'),
            location=row.get('location'),
            start_at=row.get('start_at'),
            end_at=row.get('end_at'),
            signup_start_at=row.get('signup_start_at'),
            signup_end_at=row.get('signup_end_at'),
            created_by=row.get('created_by'),
            created_at=row.get('created_at'),
        )

    def to_dict(self):
        return {
            'id': self.competition_id,
            'name': self.name,
            'location': self.location,
            'startAt': _iso(self.start_at),
            'endAt': _iso(self.end_at),
            'signupStartAt': _iso(self.signup_start_at),
            'signupEndAt': _iso(self.signup_end_at),
            'createdBy': self.created_by,
        }


class CompetitionEvent:
    """赛事项目模型"""
    def __init__(self, event_id=None, competition_id=None, name=None,
                 category=None, unit_type=EventUnitType.INDIVIDUAL):
        self.event_id = event_id
        self.competition_id = competition_id
        self.name = name
        self.category = category
        self.unit_type = unit_type if isinstance(unit_type, EventUnitType) else EventUnitType(unit_type)

    @classmethod
    def from_row(cls, row):
        return cls(
            event_id=row['id'],
            competition_id=row['competition_id'],
            name=row['name'],
            category=row.get('category'),
            unit_type=row.get('unit_type') or EventUnitType.INDIVIDUAL.value,
        )


class CompetitionGroup:
    """赛事分组模型"""
    def __init__(self, group_id=None, competition_id=None, name=None, gender=None,
                 age_bracket=None, identity_type=None, max_participants=None, team_size=None):
        self.group_id = group_id
        self.competition_id = competition_id
        self.name = name
        self.gender = gender
        self.age_bracket = age_bracket
        self.identity_type = identity_type
        self.max_participants = max_participants
        self.team_size = team_size

    @classmethod
    def from_row(cls, row):
        return cls(
            group_id=row['id'],
            competition_id=row['competition_id'],
            name=row['name'],
            gender=row.get('gender'),
            age_bracket=row.get('age_bracket'),
            identity_type=row.get('identity_type'),
            max_participants=row.get('max_participants'),
            team_size=row.get('team_size'),
        )


class MemberEvent:
    """队员名单中的单个项目条目 {name?, result?}"""
    def __init__(self, name=None, result=None):
        self.name = name
        self.result = result

    def to_dict(self):
        return {'name': self.name, 'result': self.result}


class Member:
    """队伍名单中的队员（嵌入 teams.members，不单独建表）"""
    def __init__(self, name, gender=None, group=None, events=None, registered=False):
        self.name = name
        self.gender = gender
        self.group = group
        self.events = list(events or [])
        self.registered = bool(registered)

    @classmethod
    def from_dict(cls, data):
        return cls(
            name=data.get('name') or '',
            gender=data.get('gender'),
            group=data.get('group'),
            events=[
                MemberEvent(name=item.get('name'), result=item.get('result'))
                for item in (data.get('events') or [])
                if isinstance(item, dict)
            ],
            registered=data.get('registered', False),
        )

    def to_dict(self):
        return {
            'name': self.name,
            'gender': self.gender,
            'group': self.group,
            'events': [event.to_dict() for event in self.events],
            'registered': self.registered,
        }


class Team:
    """队伍模型：每个用户至多拥有一支队伍"""
    def __init__(self, team_id=None, name=None, user_id=None, contact_phone=None,
                 members=None, created_at=None):
        self.team_id = team_id
        self.name = name
        self.user_id = user_id
        self.contact_phone = contact_phone
        self.members = list(members or [])
        self.created_at = created_at

    @classmethod
    def from_row(cls, row):
        raw_members = _load_json(row.get('members'), [])
        members = [Member.from_dict(item) for item in raw_members if isinstance(item, dict)]
        return cls(
            team_id=row['id'],
            name=row.get('name'),
            user_id=row.get('user_id'),
            contact_phone=row.get('contact_phone'),
            members=members,
            created_at=row.get('created_at'),
        )

    def summary(self):
        return {'id': self.team_id, 'name': self.name}


class Attachment:
    """报名附件 {fileName, fileUrl, size?}"""
    def __init__(self, file_name, file_url, size=None):
        self.file_name = file_name
        self.file_url = file_url
        self.size = size

    @classmethod
    def from_dict(cls, data):
        return cls(
            file_name=data.get('fileName'),
            file_url=data.get('fileUrl'),
            size=data.get('size'),
        )

    def to_dict(self):
        data = {'fileName': self.file_name, 'fileUrl': self.file_url}
        if self.size is not None:
            data['size'] = self.size
        return data


class RegistrationExtra:
    """报名记录的 extra JSON 列。

    已知键有明确字段，其余键原样保存在 passthrough 中，
    写回数据库时合并输出，保持与既有数据的兼容。
    """

    KNOWN_KEYS = ('organization', 'remark', 'group', 'gender', 'participantExtra', 'teamName')

    def __init__(self, organization=None, remark=None, group=None, gender=None,
                 participant_extra=None, team_name=None, passthrough=None):
        self.organization = organization
        self.remark = remark
        self.group = group
        self.gender = gender
        self.participant_extra = dict(participant_extra or {})
        self.team_name = team_name
        self.passthrough = dict(passthrough or {})

    @classmethod
    def from_json(cls, value):
        data = _load_json(value, {})
        if not isinstance(data, dict):
            data = {}
        passthrough = {k: v for k, v in data.items() if k not in cls.KNOWN_KEYS}
        participant_extra = data.get('participantExtra')
        return cls(
            organization=data.get('organization'),
            remark=data.get('remark'),
            group=data.get('group'),
            gender=data.get('gender'),
            participant_extra=participant_extra if isinstance(participant_extra, dict) else None,
            team_name=data.get('teamName'),
            passthrough=passthrough,
        )

    def to_json(self):
        data = dict(self.passthrough)
        known = {
            'organization': self.organization,
            'remark': self.remark,
            'group': self.group,
            'gender': self.gender,
            'participantExtra': self.participant_extra or None,
            'teamName': self.team_name,
        }
        # 与 jsonb_strip_nulls 语义一致：空值键不落库
        data.update({k: v for k, v in known.items() if v is not None})
        return data

    def with_roster_fields(self, group, gender):
        """名单同步时覆盖 group / gender，其余键保持不变"""
        merged = RegistrationExtra.from_json(self.to_json())
        merged.group = group
        merged.gender = gender
        return merged

    def __eq__(self, other):
        return isinstance(other, RegistrationExtra) and self.to_json() == other.to_json()


class EventSelection:
    """报名所选项目/分组 (registration_id, event_id, group_id?)"""
    def __init__(self, event_id, group_id=None, registration_id=None,
                 event_name=None, group_name=None):
        self.registration_id = registration_id
        self.event_id = event_id
        self.group_id = group_id
        self.event_name = event_name
        self.group_name = group_name

    def to_dict(self):
        return {
            'eventId': self.event_id,
            'eventName': self.event_name,
            'groupId': self.group_id,
            'groupName': self.group_name,
        }

    def __repr__(self):
        return f"EventSelection(event_id={self.event_id!r}, group_id={self.group_id!r})"


class Registration:
    """报名记录：一名参赛者参加一项赛事，永不物理删除"""
    def __init__(self, registration_id=None, competition_id=None, user_id=None, team_id=None,
                 participant_name=None, gender=None, identity_type=None, contact=None,
                 extra=None, attachments=None, status=RegistrationStatus.PENDING,
                 created_at=None, updated_at=None, selections=None,
                 competition_name=None, team_name=None, team_members=None):
        self.registration_id = registration_id
        self.competition_id = competition_id
        self.user_id = user_id
        self.team_id = team_id
        self.participant_name = participant_name
        self.gender = gender
        self.identity_type = identity_type
        self.contact = contact
        self.extra = extra if isinstance(extra, RegistrationExtra) else RegistrationExtra.from_json(extra)
        self.attachments = list(attachments or [])
        self.status = status if isinstance(status, RegistrationStatus) else RegistrationStatus(status)
        self.created_at = created_at or datetime.now()
        self.updated_at = updated_at or self.created_at
        self.selections = list(selections or [])
        self.competition_name = competition_name
        self.team_name = team_name
        self.team_members = list(team_members or [])

    @classmethod
    def from_row(cls, row):
        attachments = _load_json(row.get('attachments'), [])
        return cls(
            registration_id=row['id'],
            competition_id=row['competition_id'],
            user_id=row.get('user_id'),
            team_id=row.get('team_id'),
            participant_name=row.get('participant_name'),
            gender=row.get('participant_gender'),
            identity_type=row.get('participant_identity'),
            contact=row.get('contact'),
            extra=RegistrationExtra.from_json(row.get('extra')),
            attachments=[Attachment.from_dict(a) for a in attachments if isinstance(a, dict)],
            status=row.get('status') or RegistrationStatus.PENDING.value,
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at'),
            competition_name=row.get('competition_name'),
            team_name=row.get('team_name'),
            team_members=_load_json(row.get('team_members'), []),
        )

    @property
    def is_active(self):
        return self.status != RegistrationStatus.CANCELLED

    def to_dict(self):
        """转换为接口输出结构"""
        return {
            'id': self.registration_id,
            'competitionId': self.competition_id,
            'competitionName': self.competition_name,
            'userId': self.user_id,
            'status': self.status.value,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
            'participant': {
                'name': self.participant_name,
                'gender': self.gender,
                'identityType': self.identity_type,
                'contact': self.contact,
                'organization': self.extra.organization,
            },
            'team': {
                'id': self.team_id,
                'name': self.team_name or self.extra.team_name,
                'members': self.team_members,
            } if self.team_id else None,
            'remark': self.extra.remark,
            'attachments': [a.to_dict() for a in self.attachments],
            'selections': [s.to_dict() for s in self.selections],
        }


# 数据库表结构定义（按依赖顺序创建）
DATABASE_SCHEMA = {
    'users': '''
        CREATE TABLE IF NOT EXISTS users (
            id INT AUTO_INCREMENT PRIMARY KEY,
            phone VARCHAR(20) UNIQUE,
            display_name VARCHAR(100),
            role ENUM('admin', 'organizer', 'participant', 'team') DEFAULT 'organizer',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci COMMENT='用户表（由认证模块维护）';
    ''',

    'competitions': '''
        CREATE TABLE IF NOT EXISTS competitions (
            id INT AUTO_INCREMENT PRIMARY KEY,
            name VARCHAR(200) NOT NULL,
            location VARCHAR(200),
            start_at DATETIME NULL,
            end_at DATETIME NULL,
            signup_start_at DATETIME NULL COMMENT '报名开始时间，空表示不限',
            signup_end_at DATETIME NULL COMMENT '报名截止时间，空表示不限',
            config JSON NULL,
            created_by INT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (created_by) REFERENCES users(id),
            INDEX idx_created_by (created_by)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci COMMENT='赛事表';
    ''',

    'competition_events': '''
        CREATE TABLE IF NOT EXISTS competition_events (
            id INT AUTO_INCREMENT PRIMARY KEY,
            competition_id INT NOT NULL,
            name VARCHAR(100) NOT NULL,
            category VARCHAR(32) NOT NULL,
            unit_type ENUM('individual', 'team') NOT NULL DEFAULT 'individual',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (competition_id) REFERENCES competitions(id) ON DELETE CASCADE,
            INDEX idx_competition (competition_id)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci COMMENT='赛事项目表';
    ''',

    'competition_groups': '''
        CREATE TABLE IF NOT EXISTS competition_groups (
            id INT AUTO_INCREMENT PRIMARY KEY,
            competition_id INT NOT NULL,
            name VARCHAR(100) NOT NULL,
            gender ENUM('male', 'female', 'mixed') NOT NULL,
            age_bracket VARCHAR(50),
            identity_type VARCHAR(50),
            max_participants INT NULL,
            team_size INT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (competition_id) REFERENCES competitions(id) ON DELETE CASCADE,
            INDEX idx_competition (competition_id)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci COMMENT='赛事分组表';
    ''',

    'teams': '''
        CREATE TABLE IF NOT EXISTS teams (
            id INT AUTO_INCREMENT PRIMARY KEY,
            name VARCHAR(200) NOT NULL,
            contact_phone VARCHAR(20),
            members JSON NOT NULL COMMENT '队员名单（自行维护，未经校验）',
            user_id INT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
            UNIQUE KEY uniq_team_owner (user_id)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci COMMENT='队伍表（每个用户至多一支）';
    ''',

    'competition_registrations': '''
        CREATE TABLE IF NOT EXISTS competition_registrations (
            id INT AUTO_INCREMENT PRIMARY KEY,
            competition_id INT NOT NULL,
            user_id INT NOT NULL,
            team_id INT NULL,
            participant_name VARCHAR(100) NOT NULL,
            participant_gender VARCHAR(50),
            participant_identity VARCHAR(100),
            contact VARCHAR(100),
            extra JSON NOT NULL,
            attachments JSON NOT NULL,
            status ENUM('pending', 'approved', 'rejected', 'cancelled') NOT NULL DEFAULT 'pending',
            created_at DATETIME NOT NULL,
            updated_at DATETIME NOT NULL,
            FOREIGN KEY (competition_id) REFERENCES competitions(id) ON DELETE CASCADE,
            FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
            FOREIGN KEY (team_id) REFERENCES teams(id) ON DELETE SET NULL,
            INDEX idx_registration_competition (competition_id),
            INDEX idx_registration_user (user_id),
            INDEX idx_registration_team (competition_id, team_id)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci COMMENT='报名表（撤销为状态变更，不删除）';
    ''',

    'competition_registration_events': '''
        CREATE TABLE IF NOT EXISTS competition_registration_events (
            id INT AUTO_INCREMENT PRIMARY KEY,
            registration_id INT NOT NULL,
            event_id INT NOT NULL,
            group_id INT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (registration_id) REFERENCES competition_registrations(id) ON DELETE CASCADE,
            FOREIGN KEY (event_id) REFERENCES competition_events(id) ON DELETE CASCADE,
            FOREIGN KEY (group_id) REFERENCES competition_groups(id) ON DELETE SET NULL,
            UNIQUE KEY uniq_registration_event (registration_id, event_id),
            INDEX idx_registration_events_reg (registration_id)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci COMMENT='报名所选项目表（整体替换）';
    ''',
}
