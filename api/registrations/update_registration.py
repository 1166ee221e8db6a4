from flask import request, jsonify, g

from utils.decorators import login_required, log_action
from utils.validators import parse_registration_changes

from . import registrations_bp, get_registration_manager


@registrations_bp.route('/registrations/<int:registration_id>', methods=['PATCH'])
@login_required
@log_action('修改报名')
def api_update_registration(registration_id):
    changes = parse_registration_changes(request.get_json(silent=True))
    registration = get_registration_manager().update(g.actor, registration_id, changes)
    return jsonify({'success': True, 'registration': registration.to_dict()})
