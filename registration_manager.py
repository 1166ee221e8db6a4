#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
赛事报名系统 - 报名管理（直接报名、查询、修改与撤销）
"""

import logging
from datetime import datetime

from models import Member, Registration, RegistrationExtra, RegistrationStatus
from registration_guard import (
    authorize_registration_access,
    authorize_status_change,
    check_selection_references,
    check_signup_window,
    check_team_ownership,
    check_transition,
    registration_list_scope,
    require_competition,
)
from registration_writer import RegistrationWriter

logger = logging.getLogger(__name__)


class RegistrationManager:
    """报名管理器

    每个公开方法就是一个完整的工作单元：在一个事务内完成校验与写入，
    任一校验失败都会在写入前抛出业务异常并回滚。
    """

    def __init__(self, db_manager):
        self.db_manager = db_manager
        self.writer = RegistrationWriter(db_manager)

    def submit(self, actor, submission, now=None):
        """直接报名：校验通过后写入一条 pending 报名"""
        now = now or datetime.now()
        with self.db_manager.transaction() as conn:
            competition = require_competition(
                self.db_manager.get_competition_with_conn(conn, submission.competition_id)
            )
            check_signup_window(competition, now)

            event_ids = [s.event_id for s in submission.selections]
            group_ids = sorted({s.group_id for s in submission.selections if s.group_id is not None})
            found_events = self.db_manager.get_competition_events_with_conn(
                conn, competition.competition_id, event_ids
            )
            found_groups = self.db_manager.get_competition_groups_with_conn(
                conn, competition.competition_id, group_ids
            ) if group_ids else []
            check_selection_references(submission.selections, found_events, found_groups)

            team_id = self._resolve_team(conn, actor, submission)

            registration = Registration(
                competition_id=competition.competition_id,
                user_id=actor.user_id,
                team_id=team_id,
                participant_name=submission.name,
                gender=submission.gender,
                identity_type=submission.identity_type,
                contact=submission.contact,
                extra=RegistrationExtra(
                    organization=submission.organization,
                    remark=submission.remark,
                    participant_extra=submission.participant_extra,
                ),
                attachments=submission.attachments,
                status=RegistrationStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            registration_id = self.writer.apply_direct_registration(
                registration, submission.selections, conn=conn
            )
            created = self.db_manager.get_registration_with_conn(conn, registration_id)

        logger.info(
            f"用户 {actor.user_id} 报名赛事 {competition.competition_id}: "
            f"报名 {registration_id}（{submission.name}）"
        )
        return created

    def _resolve_team(self, conn, actor, submission):
        if submission.team_id is not None:
            team = check_team_ownership(
                self.db_manager.get_team_with_conn(conn, submission.team_id), actor
            )
            return team.team_id
        if submission.team_name:
            members = [Member(name=name) for name in submission.team_members]
            return self.db_manager.upsert_team_with_conn(
                conn, actor.user_id, submission.team_name, submission.contact, members
            )
        return None

    def _load_authorized(self, conn, actor, registration_id, action):
        registration = self.db_manager.get_registration_with_conn(conn, registration_id)
        competition = None
        if registration is not None and actor.is_staff:
            competition = self.db_manager.get_competition_with_conn(conn, registration.competition_id)
        authorize_registration_access(actor, registration, competition, action)
        return registration

    def get(self, actor, registration_id):
        with self.db_manager.transaction() as conn:
            return self._load_authorized(conn, actor, registration_id, '查看')

    def list(self, actor, competition_id=None, status=None, page=1, page_size=20):
        """按角色限定范围分页查询，返回 (报名列表, 总数)"""
        with self.db_manager.transaction() as conn:
            return self.db_manager.list_registrations_with_conn(
                conn,
                competition_id=competition_id,
                status=status,
                page=page,
                page_size=page_size,
                **registration_list_scope(actor),
            )

    def update(self, actor, registration_id, changes):
        """修改报名：状态、备注、附件及参赛者联系信息"""
        with self.db_manager.transaction() as conn:
            current = self._load_authorized(conn, actor, registration_id, '编辑')

            fields = {}
            target = changes.get('status')
            if target is not None:
                authorize_status_change(actor, target)
                if check_transition(current.status, target, actor):
                    fields['status'] = target

            if 'remark' in changes or 'organization' in changes:
                extra = RegistrationExtra.from_json(current.extra.to_json())
                if 'remark' in changes:
                    extra.remark = changes['remark']
                if 'organization' in changes:
                    extra.organization = changes['organization']
                fields['extra'] = extra
            if 'attachments' in changes:
                fields['attachments'] = changes['attachments']
            if 'contact' in changes:
                fields['contact'] = changes['contact']
            if 'gender' in changes:
                fields['participant_gender'] = changes['gender']
            if 'identity_type' in changes:
                fields['participant_identity'] = changes['identity_type']

            if fields:
                self.db_manager.update_registration_fields_with_conn(conn, registration_id, fields)
                logger.info(
                    f"用户 {actor.user_id} 修改报名 {registration_id}: {sorted(fields)}"
                )
            return self.db_manager.get_registration_with_conn(conn, registration_id)

    def cancel(self, actor, registration_id):
        """撤销报名（幂等：已撤销的报名直接返回）"""
        with self.db_manager.transaction() as conn:
            current = self._load_authorized(conn, actor, registration_id, '撤销')
            if current.status == RegistrationStatus.CANCELLED:
                return current
            self.db_manager.set_registration_status_with_conn(
                conn, registration_id, RegistrationStatus.CANCELLED
            )
            logger.info(f"用户 {actor.user_id} 撤销报名 {registration_id}")
            return self.db_manager.get_registration_with_conn(conn, registration_id)

