#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
赛事报名系统 - 请求参数解析与校验

把接口收到的 JSON 转换为模型对象，不合法时抛出 ValidationFailed。
字段名同时兼容 camelCase 与 snake_case。
"""

import re

from config import Config
from exceptions import ValidationFailed
from models import Attachment, EventSelection, Member, MemberEvent, RegistrationStatus

_URL_PATTERN = re.compile(r'^https?://[^\s/$.?#][^\s]*$', re.IGNORECASE)


def pick(data, *keys, default=None):
    """按顺序取第一个存在的键"""
    for key in keys:
        if key in data:
            return data[key]
    return default


def clean_text(value, field, max_length=None, required=False):
    """去除首尾空白；空串视为未填写"""
    if value is None:
        if required:
            raise ValidationFailed(f'{field} 不能为空')
        return None
    if not isinstance(value, str):
        raise ValidationFailed(f'{field} 必须是字符串')
    value = value.strip()
    if not value:
        if required:
            raise ValidationFailed(f'{field} 不能为空')
        return None
    if max_length is not None and len(value) > max_length:
        raise ValidationFailed(f'{field} 长度不能超过 {max_length}')
    return value


def parse_id(value, field):
    """解析整数 ID（兼容数字字符串）"""
    if isinstance(value, bool):
        raise ValidationFailed(f'{field} 格式不正确')
    if isinstance(value, int):
        if value > 0:
            return value
        raise ValidationFailed(f'{field} 格式不正确')
    if isinstance(value, str) and value.strip().isdecimal():
        try:
            parsed = int(value)
        except ValueError:
            raise ValidationFailed(f'{field} 格式不正确') from None
        if parsed > 0:
            return parsed
    raise ValidationFailed(f'{field} 格式不正确')


def parse_flag(value, field):
    """只接受 JSON 布尔值，缺省为 False"""
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValidationFailed(f'{field} 必须是布尔值')
    return value


def parse_optional_id(value, field):
    if value is None or value == '':
        return None
    return parse_id(value, field)


def parse_status(value):
    try:
        return RegistrationStatus(value)
    except ValueError:
        raise ValidationFailed('报名状态不合法', status=value) from None


def parse_attachments(value):
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValidationFailed('attachments 必须是数组')
    attachments = []
    for index, item in enumerate(value):
        if not isinstance(item, dict):
            raise ValidationFailed(f'第 {index + 1} 个附件格式不正确')
        file_name = clean_text(pick(item, 'fileName', 'file_name'), '附件名称', required=True)
        file_url = clean_text(pick(item, 'fileUrl', 'file_url'), '附件地址', required=True)
        if not _URL_PATTERN.match(file_url):
            raise ValidationFailed('附件地址必须是有效的 URL')
        size = item.get('size')
        if size is not None and (isinstance(size, bool) or not isinstance(size, int) or size <= 0):
            raise ValidationFailed('附件大小必须是正整数')
        attachments.append(Attachment(file_name=file_name, file_url=file_url, size=size))
    return attachments


def parse_selections(value):
    """解析 selections.events，至少选择一个项目；同一项目重复出现时保留第一次"""
    events = value.get('events') if isinstance(value, dict) else None
    if not isinstance(events, list) or not events:
        raise ValidationFailed('请至少选择一个项目')
    selections = []
    seen = set()
    for item in events:
        if not isinstance(item, dict):
            raise ValidationFailed('项目选择格式不正确')
        event_id = parse_id(pick(item, 'eventId', 'event_id'), 'eventId')
        group_id = parse_optional_id(pick(item, 'groupId', 'group_id'), 'groupId')
        if event_id in seen:
            continue
        seen.add(event_id)
        selections.append(EventSelection(event_id=event_id, group_id=group_id))
    return selections


class DirectSubmission:
    """直接报名请求"""

    def __init__(self, competition_id, name, selections, gender=None, identity_type=None,
                 contact=None, organization=None, team_id=None, team_name=None,
                 team_members=None, participant_extra=None, attachments=None, remark=None):
        self.competition_id = competition_id
        self.name = name
        self.selections = selections
        self.gender = gender
        self.identity_type = identity_type
        self.contact = contact
        self.organization = organization
        self.team_id = team_id
        self.team_name = team_name
        self.team_members = list(team_members or [])
        self.participant_extra = dict(participant_extra or {})
        self.attachments = list(attachments or [])
        self.remark = remark


def parse_direct_submission(data):
    if not isinstance(data, dict):
        raise ValidationFailed('请求必须是JSON对象')
    competition_id = parse_id(pick(data, 'competitionId', 'competition_id'), 'competitionId')

    participant = data.get('participant')
    if not isinstance(participant, dict):
        raise ValidationFailed('缺少参赛者信息')
    name = clean_text(participant.get('name'), '参赛者姓名', required=True)

    team_members = pick(participant, 'teamMembers', 'team_members')
    if team_members is not None:
        if not isinstance(team_members, list):
            raise ValidationFailed('teamMembers 必须是数组')
        if len(team_members) > Config.TEAM_MEMBERS_MAX:
            raise ValidationFailed(f'队员人数不能超过 {Config.TEAM_MEMBERS_MAX}')
        team_members = [clean_text(m, '队员姓名', required=True) for m in team_members]

    participant_extra = participant.get('extra')
    if participant_extra is not None and not isinstance(participant_extra, dict):
        raise ValidationFailed('participant.extra 必须是对象')

    return DirectSubmission(
        competition_id=competition_id,
        name=name,
        selections=parse_selections(data.get('selections')),
        gender=clean_text(participant.get('gender'), '性别'),
        identity_type=clean_text(pick(participant, 'identityType', 'identity_type'), '身份类型'),
        contact=clean_text(participant.get('contact'), '联系方式'),
        organization=clean_text(participant.get('organization'), '单位'),
        team_id=parse_optional_id(pick(participant, 'teamId', 'team_id'), 'teamId'),
        team_name=clean_text(pick(participant, 'teamName', 'team_name'), '队伍名称'),
        team_members=team_members,
        participant_extra=participant_extra,
        attachments=parse_attachments(data.get('attachments')),
        remark=clean_text(data.get('remark'), '备注'),
    )


def parse_registration_changes(data):
    """解析报名修改请求，只返回请求中实际出现的字段"""
    if not isinstance(data, dict):
        raise ValidationFailed('请求必须是JSON对象')
    changes = {}
    if data.get('status') is not None:
        changes['status'] = parse_status(data['status'])
    if 'remark' in data:
        remark = data['remark']
        if remark is not None and not isinstance(remark, str):
            raise ValidationFailed('remark 必须是字符串')
        changes['remark'] = remark
    if data.get('attachments') is not None:
        changes['attachments'] = parse_attachments(data['attachments'])

    participant = data.get('participant')
    if participant is not None:
        if not isinstance(participant, dict):
            raise ValidationFailed('participant 必须是对象')
        for source_keys, target, label in (
            (('contact',), 'contact', '联系方式'),
            (('gender',), 'gender', '性别'),
            (('identityType', 'identity_type'), 'identity_type', '身份类型'),
            (('organization',), 'organization', '单位'),
        ):
            for key in source_keys:
                if key in participant:
                    changes[target] = clean_text(participant[key], label)
                    break
    return changes


def parse_member(data, index):
    limits = Config.ROSTER_FIELD_MAX_LENGTH
    if not isinstance(data, dict):
        raise ValidationFailed(f'第 {index + 1} 名队员格式不正确')
    name = clean_text(data.get('name'), f'第 {index + 1} 名队员姓名', required=True)
    events = data.get('events') or []
    if not isinstance(events, list):
        raise ValidationFailed(f'队员 {name} 的项目格式不正确')
    if len(events) > Config.ROSTER_MAX_EVENTS_PER_MEMBER:
        raise ValidationFailed(f'队员 {name} 最多填写 {Config.ROSTER_MAX_EVENTS_PER_MEMBER} 个项目')
    member_events = []
    for item in events:
        if not isinstance(item, dict):
            raise ValidationFailed(f'队员 {name} 的项目格式不正确')
        member_events.append(MemberEvent(
            name=clean_text(item.get('name'), '项目名称', limits['event']),
            result=clean_text(item.get('result'), '成绩', limits['result']),
        ))
    return Member(
        name=name,
        gender=clean_text(data.get('gender'), '性别', limits['gender']),
        group=clean_text(data.get('group'), '组别', limits['group']),
        events=member_events,
        registered=parse_flag(data.get('registered', False), f'队员 {name} 的 registered'),
    )


def parse_roster(data):
    """解析名单提交，返回 (队员列表, 赛事 ID 或 None)"""
    if not isinstance(data, dict):
        raise ValidationFailed('请求必须是JSON对象')
    members = data.get('members')
    if not isinstance(members, list):
        raise ValidationFailed('members 必须是数组')
    competition_id = parse_optional_id(pick(data, 'competitionId', 'competition_id'), 'competitionId')
    return [parse_member(item, index) for index, item in enumerate(members)], competition_id


def parse_page_args(args):
    """解析列表分页参数"""
    try:
        page = int(args.get('page', 1))
        page_size = int(pick(args, 'pageSize', 'page_size', default=Config.REGISTRATION_PAGE_SIZE))
    except (TypeError, ValueError):
        raise ValidationFailed('分页参数不合法') from None
    if page < 1 or page_size < 1 or page_size > Config.REGISTRATION_PAGE_SIZE_MAX:
        raise ValidationFailed('分页参数不合法')
    return page, page_size
