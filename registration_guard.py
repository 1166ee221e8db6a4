#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
赛事报名系统 - 报名生命周期校验

状态流转（参赛者与队伍账号的直接修改）:
    pending  -> approved / rejected / cancelled
    approved -> cancelled
    rejected -> cancelled
    cancelled 对参赛者而言是终态，名单同步可以把它恢复为 approved。
    admin/organizer 可设置任意状态，但 rejected 不能直接改为 approved。

权限:
    admin 不受归属限制；organizer 只能处理自己创建的赛事下的报名；
    参赛者和队伍账号只能查看本人的报名，且只能把它撤销。
"""

import logging
from datetime import datetime

from exceptions import Forbidden, NotFound, ValidationFailed, WindowClosed, WindowNotOpen
from models import RegistrationStatus

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    RegistrationStatus.PENDING: {
        RegistrationStatus.APPROVED,
        RegistrationStatus.REJECTED,
        RegistrationStatus.CANCELLED,
    },
    RegistrationStatus.APPROVED: {RegistrationStatus.CANCELLED},
    RegistrationStatus.REJECTED: {RegistrationStatus.CANCELLED},
    RegistrationStatus.CANCELLED: set(),
}

# 被驳回的报名只能经名单同步恢复
STAFF_BLOCKED_TRANSITIONS = {
    (RegistrationStatus.REJECTED, RegistrationStatus.APPROVED),
}


def require_competition(competition):
    if competition is None:
        raise NotFound('赛事不存在')
    return competition


def check_signup_window(competition, now=None):
    """报名时间窗口校验，两端均为闭区间，未设置的一端不限"""
    now = now or datetime.now()
    if competition.signup_start_at and now < competition.signup_start_at:
        raise WindowNotOpen()
    if competition.signup_end_at and now > competition.signup_end_at:
        raise WindowClosed()


def check_selection_references(selections, found_events, found_groups):
    """所选项目/分组必须全部属于当前赛事。

    found_events / found_groups 是按赛事过滤后实际查到的目录记录。
    """
    known_event_ids = {event.event_id for event in found_events}
    invalid_events = [s.event_id for s in selections if s.event_id not in known_event_ids]
    if invalid_events:
        raise ValidationFailed('存在无效的项目选择', eventIds=invalid_events)

    known_group_ids = {group.group_id for group in found_groups}
    invalid_groups = [
        s.group_id for s in selections
        if s.group_id is not None and s.group_id not in known_group_ids
    ]
    if invalid_groups:
        raise ValidationFailed('存在无效的分组选择', groupIds=invalid_groups)


def check_team_ownership(team, actor):
    """使用已有队伍报名时，队伍必须存在且属于当前用户"""
    if team is None:
        raise NotFound('团队不存在')
    if team.user_id != actor.user_id:
        raise Forbidden('无权使用该团队信息')
    return team


def check_transition(current, target, actor=None):
    """校验直接修改状态是否合法；目标与当前状态相同时视为无变化。

    管理角色（admin/organizer）可设置任意状态，唯一例外是不能把被驳回的
    报名直接改为通过；其他角色按 ALLOWED_TRANSITIONS 流转。
    """
    if current == target:
        return False
    if actor is not None and actor.is_staff:
        allowed = (current, target) not in STAFF_BLOCKED_TRANSITIONS
    else:
        allowed = target in ALLOWED_TRANSITIONS.get(current, set())
    if not allowed:
        raise ValidationFailed(f'报名状态不能从 {current.value} 变更为 {target.value}')
    return True


def can_manage_competition(actor, competition):
    if actor.is_admin:
        return True
    return actor.is_organizer and competition is not None and competition.created_by == actor.user_id


def authorize_registration_access(actor, registration, competition, action='编辑'):
    """查看/编辑单条报名的权限校验"""
    if registration is None:
        raise NotFound('报名记录不存在')
    if actor.is_staff:
        if not can_manage_competition(actor, competition):
            raise Forbidden(f'无权{action}该赛事的报名记录')
        return
    if registration.user_id != actor.user_id:
        raise Forbidden(f'无权{action}该报名记录')


def authorize_status_change(actor, target):
    """非管理角色只能把报名撤销"""
    if actor.is_staff:
        return
    if target != RegistrationStatus.CANCELLED:
        raise Forbidden('仅可撤销当前报名')


def registration_list_scope(actor):
    """列表查询的数据范围"""
    if actor.is_admin:
        return {}
    if actor.is_organizer:
        return {'organizer_id': actor.user_id}
    return {'user_id': actor.user_id}
