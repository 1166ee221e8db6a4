from flask import request, jsonify, g

from utils.decorators import login_required
from utils.validators import parse_optional_id, parse_page_args, parse_status

from . import registrations_bp, get_registration_manager


@registrations_bp.route('/registrations', methods=['GET'])
@login_required
def api_list_registrations():
    """报名列表（管理员看全部，组织者看自己的赛事，其他人看自己的报名）"""
    competition_id = parse_optional_id(
        request.args.get('competitionId') or request.args.get('competition_id'),
        'competitionId',
    )
    status = request.args.get('status')
    status = parse_status(status) if status else None
    page, page_size = parse_page_args(request.args)

    registrations, total = get_registration_manager().list(
        g.actor,
        competition_id=competition_id,
        status=status,
        page=page,
        page_size=page_size,
    )
    return jsonify({
        'success': True,
        'registrations': [r.to_dict() for r in registrations],
        'pagination': {
            'page': page,
            'pageSize': page_size,
            'total': total,
        },
    })
