#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
赛事报名系统 - 报名事务写入

把名单同步计划或单条报名原子地写入数据库：报名行的新增/更新/撤销
与所选项目的整体替换在同一个事务中完成，任一步失败则整体回滚。
"""

import logging
from contextlib import contextmanager
from datetime import datetime

from models import Registration, RegistrationStatus, EventSelection

logger = logging.getLogger(__name__)


class RegistrationWriter:
    """报名写入器

    两个写入入口都接受可选的 conn：传入时在调用方的事务中执行，
    由调用方负责提交；不传时自行开启并提交事务。
    """

    def __init__(self, db_manager):
        self.db_manager = db_manager

    @contextmanager
    def _unit_of_work(self, conn):
        if conn is not None:
            yield conn
        else:
            with self.db_manager.transaction() as own_conn:
                yield own_conn

    def apply_roster_sync(self, competition_id, team_id, owner_user_id, plan, conn=None, now=None):
        """执行名单同步计划，返回 {参赛者姓名: 报名 ID}"""
        now = now or datetime.now()
        registration_ids = {}
        with self._unit_of_work(conn) as conn:
            for mutation in plan.mutations:
                if mutation.is_insert:
                    registration = Registration(
                        competition_id=competition_id,
                        user_id=owner_user_id,
                        team_id=team_id,
                        participant_name=mutation.participant_name,
                        gender=mutation.gender,
                        identity_type=mutation.group,
                        extra=mutation.extra(),
                        attachments=[],
                        status=RegistrationStatus.APPROVED,
                        created_at=now,
                        updated_at=now,
                    )
                    registration_id = self.db_manager.insert_registration_with_conn(conn, registration)
                else:
                    registration_id = mutation.registration_id
                    self.db_manager.update_registration_fields_with_conn(
                        conn,
                        registration_id,
                        {
                            'participant_gender': mutation.gender,
                            'participant_identity': mutation.group,
                            'extra': mutation.extra(),
                            'status': RegistrationStatus.APPROVED,
                        },
                    )
                    if mutation.reactivates:
                        logger.info(f"报名 {registration_id}（{mutation.participant_name}）由撤销恢复为通过")

                self.db_manager.replace_selections_with_conn(
                    conn,
                    registration_id,
                    [EventSelection(event_id=event_id) for event_id in mutation.event_ids],
                )
                registration_ids[mutation.key] = registration_id

            for registration in plan.cancellations:
                self.db_manager.set_registration_status_with_conn(
                    conn, registration.registration_id, RegistrationStatus.CANCELLED
                )

        logger.info(
            f"赛事 {competition_id} 队伍 {team_id} 名单同步已写入: {plan.summary()}"
        )
        return registration_ids

    def apply_direct_registration(self, registration, selections, conn=None):
        """写入一条报名及其所选项目，返回报名 ID"""
        with self._unit_of_work(conn) as conn:
            registration_id = self.db_manager.insert_registration_with_conn(conn, registration)
            self.db_manager.replace_selections_with_conn(conn, registration_id, selections)
        registration.registration_id = registration_id
        for selection in selections:
            selection.registration_id = registration_id
        return registration_id
