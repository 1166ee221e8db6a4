from flask import jsonify, g

from utils.decorators import login_required, log_action

from . import registrations_bp, get_registration_manager


@registrations_bp.route('/registrations/<int:registration_id>', methods=['DELETE'])
@login_required
@log_action('撤销报名')
def api_cancel_registration(registration_id):
    """撤销报名：只修改状态，不删除记录；重复撤销直接返回成功"""
    registration = get_registration_manager().cancel(g.actor, registration_id)
    return jsonify({
        'success': True,
        'message': '报名已撤销',
        'registration': registration.to_dict(),
    })
