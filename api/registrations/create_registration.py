from flask import request, jsonify, g

from utils.decorators import login_required, log_action
from utils.validators import parse_direct_submission

from . import registrations_bp, get_registration_manager


@registrations_bp.route('/registrations', methods=['POST'])
@login_required
@log_action('提交报名')
def api_create_registration():
    """直接报名（不经过队伍名单），新报名为待审核状态"""
    submission = parse_direct_submission(request.get_json(silent=True))
    registration = get_registration_manager().submit(g.actor, submission)
    return jsonify({
        'success': True,
        'message': '报名成功',
        'registration': registration.to_dict(),
    }), 201
