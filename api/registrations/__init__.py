from flask import Blueprint, current_app
import logging

from registration_manager import RegistrationManager


registrations_bp = Blueprint('registrations', __name__)

logger = logging.getLogger(__name__)


def get_registration_manager():
    return RegistrationManager(current_app.extensions['db_manager'])


# 每个具体路由实现在本包下的独立模块中
from . import (
    list_registrations,
    get_registration,
    create_registration,
    update_registration,
    cancel_registration,
)

__all__ = ['registrations_bp']
