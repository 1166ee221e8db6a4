from flask import jsonify, g

from utils.decorators import login_required

from . import registrations_bp, get_registration_manager


@registrations_bp.route('/registrations/<int:registration_id>', methods=['GET'])
@login_required
def api_get_registration(registration_id):
    registration = get_registration_manager().get(g.actor, registration_id)
    return jsonify({'success': True, 'registration': registration.to_dict()})
