#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
赛事报名系统 - 队员名单与报名记录的同步计算

根据队伍提交的名单和赛事项目目录，计算使该队伍在该赛事下的
报名记录与名单一致所需的新增、更新和撤销操作。本模块只做计算，
不访问数据库；写入由 registration_writer 在单个事务内完成。

同步规则:
- 项目名和参赛者姓名均按去除首尾空白后的原文匹配（区分大小写）；
- 未勾选 registered 的队员、以及一个项目都匹配不上的队员不参与同步；
- 名单中已有同名报名的队员更新资料、恢复为 approved 并整体替换所选项目；
- 名单中新出现的队员新增一条 approved 报名，归属队伍拥有者；
- 名单不再包含的有效报名一律撤销（cancelled），不删除；
- 同一次提交中重复出现的姓名合并为一条报名，以最后出现的为准。
"""

import logging

from models import RegistrationExtra, RegistrationStatus

logger = logging.getLogger(__name__)


def normalize_name(value):
    """名单匹配键：去除首尾空白"""
    if value is None:
        return ''
    return str(value).strip()


def build_event_index(events):
    """项目名 -> 项目 ID"""
    index = {}
    for event in events:
        name = normalize_name(event.name)
        if name:
            index[name] = event.event_id
    return index


def resolve_member_events(member, event_index):
    """返回队员所填项目中能在目录中找到的项目 ID（保持顺序、去重）"""
    event_ids = []
    for item in member.events:
        name = normalize_name(item.name)
        if not name:
            continue
        event_id = event_index.get(name)
        if event_id is not None and event_id not in event_ids:
            event_ids.append(event_id)
    return event_ids


class RosterMutation:
    """名单中一名参赛者对应的写入操作：existing 为空表示新增"""

    def __init__(self, key, participant_name, gender, group, event_ids, existing=None):
        self.key = key
        self.participant_name = participant_name
        self.gender = gender
        self.group = group
        self.event_ids = list(event_ids)
        self.existing = existing

    @property
    def is_insert(self):
        return self.existing is None

    @property
    def registration_id(self):
        return self.existing.registration_id if self.existing else None

    @property
    def reactivates(self):
        return self.existing is not None and self.existing.status == RegistrationStatus.CANCELLED

    def extra(self):
        if self.existing is None:
            return RegistrationExtra(group=self.group, gender=self.gender)
        return self.existing.extra.with_roster_fields(self.group, self.gender)

    def __repr__(self):
        action = 'insert' if self.is_insert else f'update#{self.registration_id}'
        return f"RosterMutation({self.key!r}, {action}, events={self.event_ids})"


class RosterSyncPlan:
    """一次名单同步的完整操作集合"""

    def __init__(self, mutations=None, cancellations=None, skipped=None):
        self.mutations = list(mutations or [])
        self.cancellations = list(cancellations or [])
        self.skipped = list(skipped or [])

    @property
    def inserts(self):
        return [m for m in self.mutations if m.is_insert]

    @property
    def updates(self):
        return [m for m in self.mutations if not m.is_insert]

    def summary(self):
        return {
            'inserted': len(self.inserts),
            'updated': len(self.updates),
            'reactivated': sum(1 for m in self.mutations if m.reactivates),
            'cancelled': len(self.cancellations),
            'skipped': len(self.skipped),
        }


def plan_roster_sync(events, existing_registrations, members):
    """计算名单同步操作。

    Args:
        events: 赛事项目目录（CompetitionEvent 列表）
        existing_registrations: 该队伍在该赛事下的全部报名（含已撤销）
        members: 提交的名单（Member 列表）

    Returns:
        RosterSyncPlan
    """
    event_index = build_event_index(events)

    existing_by_name = {}
    for registration in existing_registrations:
        key = normalize_name(registration.participant_name)
        if key:
            existing_by_name[key] = registration

    planned = {}
    skipped = []
    for member in members:
        key = normalize_name(member.name)
        if not key:
            continue
        if not member.registered:
            skipped.append(key)
            continue
        event_ids = resolve_member_events(member, event_index)
        if not event_ids:
            skipped.append(key)
            continue

        planned[key] = RosterMutation(
            key=key,
            participant_name=key,
            gender=member.gender or None,
            group=member.group or None,
            event_ids=event_ids,
            existing=existing_by_name.get(key),
        )

    processed_ids = {m.registration_id for m in planned.values() if not m.is_insert}
    cancellations = [
        registration for registration in existing_registrations
        if registration.registration_id not in processed_ids
        and registration.status != RegistrationStatus.CANCELLED
    ]

    plan = RosterSyncPlan(list(planned.values()), cancellations, skipped)
    logger.debug(f"名单同步计划: {plan.summary()}")
    return plan
