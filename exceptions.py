#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
赛事报名系统 - 业务异常定义

所有业务异常都带有面向用户的提示信息和对应的 HTTP 状态码，
由 app.py 中注册的错误处理器统一转换为 JSON 响应。
"""


class RegistrationError(Exception):
    """报名业务异常基类"""

    status_code = 500
    default_message = '操作失败'

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        data = {'success': False, 'message': self.message, 'code': self.status_code}
        if self.details:
            data['details'] = self.details
        return data


class NotFound(RegistrationError):
    """赛事、队伍或报名记录不存在"""

    status_code = 404
    default_message = '记录不存在'


class Forbidden(RegistrationError):
    """角色或归属校验失败"""

    status_code = 403
    default_message = '权限不足'


class ValidationFailed(RegistrationError):
    """请求参数不合法，或引用了不属于该赛事的项目/分组"""

    status_code = 400
    default_message = '参数校验失败'


class SignupWindowError(RegistrationError):
    """报名时间窗口校验失败"""

    status_code = 400


class WindowNotOpen(SignupWindowError):
    default_message = '报名尚未开始'


class WindowClosed(SignupWindowError):
    default_message = '报名已截止'


class Conflict(RegistrationError):
    """违反唯一性约束，例如一个用户创建多支队伍"""

    status_code = 409
    default_message = '记录已存在'
